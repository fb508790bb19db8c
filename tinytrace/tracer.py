import collections, logging, pathlib
from dataclasses import dataclass
from .common import TraceError, zext, xfmt, imms, operands
from .disasm import format_instr

logger = logging.getLogger(__name__)

HEADER = 'Time\tCycles\tPC\tInstr\tMnemonic'
def trace_filename(core_id): return f'trace_core_{core_id:02x}.log'

@dataclass
class core_signals:  # what the core drives into the tracer for one sampling edge
    rst: bool = False
    pc: int = 0
    instr: int = 0
    compressed: bool = False
    valid: bool = False
    decoding: bool = False
    flush: bool = False
    rs1_value: int = 0
    rs2_value: int = 0
    rs3_value: int = 0
    imm_u: int = 0
    imm_uj: int = 0
    imm_i: int = 0
    imm_iz: int = 0
    imm_z: int = 0
    imm_s: int = 0
    imm_sb: int = 0

    @classmethod
    def retiring(cls, instr, pc=0, rs1=0, rs2=0, rs3=0, **kwargs):  # a valid, decoding cycle with immediates taken from instr
        im = imms.from_instr(zext(32, instr))
        kwargs = dict(valid=True, decoding=True, imm_u=im.u, imm_uj=im.uj, imm_i=im.i, imm_iz=im.iz, imm_z=im.z, imm_s=im.s, imm_sb=im.sb) | kwargs
        return cls(pc=pc, instr=instr, rs1_value=rs1, rs2_value=rs2, rs3_value=rs3, **kwargs)
    def retired(self): return bool((self.valid and self.decoding) or self.flush)  # flush: e.g. wfi never stalls in decode, log it anyway
    def operands(self): return operands(self.rs1_value, self.rs2_value, self.rs3_value)
    def imms(self): return imms(self.imm_u, self.imm_uj, self.imm_i, self.imm_iz, self.imm_z, self.imm_s, self.imm_sb)

@dataclass(frozen=True)
class trace_record:
    time: int
    cycle: int
    pc: int
    instr: int
    line: str
    def __str__(self): return f'{self.time}\t{self.cycle}\t0x{xfmt(32, self.pc)}\t0x{xfmt(32, self.instr)}\t{self.line}'

class cycle_counter:
    def __init__(self): self.value = 0
    def sample(self, rst): self.value = 0 if rst else self.value + 1; return self.value

class log_sink:
    """Trace file of one core. Opened once, written by the draining edge only, released once."""
    def __init__(self, path): self.path, self.f, self.released = pathlib.Path(path), None, False
    @property
    def closed(self): return self.f is None
    def open(self):
        if self.f is not None or self.released: raise TraceError(f'{self.path}: trace file can only be opened once')
        self.f = open(self.path, 'w')
        self.f.write(HEADER + '\n')
    def write(self, rec):
        if self.f is None: raise TraceError(f'{self.path}: trace file is not open')
        self.f.write(f'{rec}\n')
    def close(self):
        if self.f is None: return
        self.f.close()
        self.f, self.released = None, True

class tracer:
    """Instruction tracer of one core.

    sampling_edge() captures retiring instructions into a FIFO, draining_edge() writes the oldest one to the trace file.
    The two run on opposite clock phases and never concurrently, so the deque has exactly one producer and one consumer
    at any time and needs no lock. It is unbounded: if captures outpace drains, records wait instead of being dropped.
    """
    def __init__(self, core_id=0, outdir='.'):
        self.core_id, self.counter, self.queue = core_id, cycle_counter(), collections.deque()
        self.sink = log_sink(pathlib.Path(outdir) / trace_filename(core_id))
    def open(self):
        self.sink.open()
        logger.info(f'core {self.core_id:02x}: tracing to {self.sink.path}')
        return self
    def close(self):  # records still queued are lost; the trace is best-effort
        if self.queue: logger.debug(f'core {self.core_id:02x}: dropping {len(self.queue)} unflushed trace records')
        self.queue.clear()
        self.sink.close()
    def __enter__(self): return self.open()
    def __exit__(self, *exc): self.close()
    def sampling_edge(self, sig, time):
        if sig.retired():
            line = format_instr(sig.instr, sig.pc, sig.operands(), sig.imms(), compressed=sig.compressed)
            self.queue.append(trace_record(time, self.counter.value, zext(32, sig.pc), zext(32, sig.instr), line))
        self.counter.sample(sig.rst)
    def draining_edge(self):
        if not self.queue: return None
        rec = self.queue.popleft()
        self.sink.write(rec)
        return rec

def clocked(tr, samples, period=10, start=0):  # one clock period per sample; yields records as they are written
    for n, sig in enumerate(samples):
        tr.sampling_edge(sig, start + n*period)
        if (rec := tr.draining_edge()) is not None: yield rec
