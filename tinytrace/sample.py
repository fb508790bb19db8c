import dataclasses
import dataclasses_struct as dcs
from .common import TraceError, zext
from .tracer import core_signals

flags = ('rst', 'compressed', 'valid', 'decoding', 'flush')

@dcs.dataclass()
class signal_sample:  # one sampling edge of core signals, as stored in a capture file
    pc:         dcs.U32 = 0
    instr:      dcs.U32 = 0
    rs1_value:  dcs.U32 = 0
    rs2_value:  dcs.U32 = 0
    rs3_value:  dcs.U32 = 0
    imm_u:      dcs.U32 = 0
    imm_uj:     dcs.U32 = 0
    imm_i:      dcs.U32 = 0
    imm_iz:     dcs.U32 = 0
    imm_z:      dcs.U32 = 0
    imm_s:      dcs.U32 = 0
    imm_sb:     dcs.U32 = 0
    rst:        dcs.U8 = 0
    compressed: dcs.U8 = 0
    valid:      dcs.U8 = 0
    decoding:   dcs.U8 = 0
    flush:      dcs.U8 = 0

    @classmethod
    def from_signals(cls, sig): return cls(**{f.name: int(bool(getattr(sig, f.name))) if f.name in flags else zext(32, getattr(sig, f.name)) for f in dataclasses.fields(core_signals)})
    def to_signals(self): return core_signals(**{f.name: bool(getattr(self, f.name)) if f.name in flags else getattr(self, f.name) for f in dataclasses.fields(core_signals)})

record_size = len(signal_sample().pack())

def read_samples(path):  # yields core_signals, one per clock period
    with open(path, 'rb') as f:
        while chunk := f.read(record_size):
            if len(chunk) != record_size: raise TraceError(f'{path}: truncated sample record ({len(chunk)} of {record_size} bytes)')
            yield signal_sample.from_packed(chunk).to_signals()

def write_samples(path, signals):
    n = 0
    with open(path, 'wb') as f:
        for n, sig in enumerate(signals, 1): f.write(signal_sample.from_signals(sig).pack())
    return n
