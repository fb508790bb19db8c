from .common import zext, sext, xfmt, hex32, bits, TraceError, operands, imms
from .opcodes import mask_match, load_table
from .disasm import format_instr, lookup, INVALID
from .tracer import tracer, trace_record, core_signals, cycle_counter, log_sink, clocked, trace_filename, HEADER
from .sample import signal_sample, read_samples, write_samples
