import functools
from dataclasses import dataclass

def zext(length, word): return word&((1<<length)-1)
def sext(length, word): return word|~((1<<length)-1) if word&(1<<(length-1)) else zext(length, word)
def xfmt(length, word): return f'{{:0{length//4}x}}'.format(zext(length, word))
def hex32(word): return '0x' + xfmt(32, word)
def bits(word, hi, lo): return (word >> lo) & ((1<<(hi-lo+1))-1)

class TraceError(Exception): pass

@dataclass(frozen=True)
class operands:  # source register values as read by the core in the traced cycle
    rs1: int = 0
    rs2: int = 0
    rs3: int = 0

@dataclass(frozen=True)
class imms:  # the seven immediate buses of the core's decoder, all 32 bits wide
    u: int = 0   # upper immediate, already shifted into bits 31:12
    uj: int = 0  # jump offset
    i: int = 0   # arithmetic immediate, sign-extended
    iz: int = 0  # arithmetic immediate, zero-extended
    z: int = 0   # rs1 field as a zero-extended immediate (csr*i)
    s: int = 0   # store offset
    sb: int = 0  # branch offset

    @classmethod
    @functools.lru_cache(maxsize=4096)
    def from_instr(cls, instr):  # mirrors the core's immediate generation
        return cls(
            u  = zext(32, instr & 0xfffff000),
            uj = zext(32, sext(21, (bits(instr,31,31)<<20) | (bits(instr,19,12)<<12) | (bits(instr,20,20)<<11) | (bits(instr,30,21)<<1))),
            i  = zext(32, sext(12, bits(instr,31,20))),
            iz = bits(instr,31,20),
            z  = bits(instr,19,15),
            s  = zext(32, sext(12, (bits(instr,31,25)<<5) | bits(instr,11,7))),
            sb = zext(32, sext(13, (bits(instr,31,31)<<12) | (bits(instr,7,7)<<11) | (bits(instr,30,25)<<5) | (bits(instr,11,8)<<1))),
        )
