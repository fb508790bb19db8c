import logging, functools
from .common import zext, bits, hex32, imms, operands
from .opcodes import mask_match, OPCODE_LOAD_POST, OPCODE_STORE_POST

logger = logging.getLogger(__name__)

INVALID = 'INVALID'
load_sizes = {0b000: 'LB', 0b001: 'LH', 0b010: 'LW', 0b100: 'LBU', 0b101: 'LHU'}
store_sizes = {0b00: 'SB', 0b01: 'SH', 0b10: 'SW'}
hwloops = {0b000: 'LSTARTI', 0b001: 'LENDI', 0b010: 'LCOUNT', 0b011: 'LCOUNTI', 0b100: 'LSETUP', 0b101: 'LSETUPI'}

def rd(instr): return bits(instr, 11, 7)
def rs1(instr): return bits(instr, 19, 15)
def rs2(instr): return bits(instr, 24, 20)
def regval(r, value): return f'x{r} ({hex32(value)})'
def target(addr): return f'(-> {hex32(addr)})'

# formatters: (name, instr, pc, ops, im) -> (mnemonic, operand text)
def fmt_bare(name, instr, pc, ops, im): return name, ''
def fmt_u(name, instr, pc, ops, im): return name, f'x{rd(instr)}, {hex32(im.u)}'
def fmt_uj(name, instr, pc, ops, im): return name, f'x{rd(instr)}, {hex32(im.uj)} {target(pc+im.uj)}'
def fmt_i(name, instr, pc, ops, im): return name, f'x{rd(instr)}, {regval(rs1(instr), ops.rs1)}, {hex32(im.i)}'
def fmt_sb(name, instr, pc, ops, im): return name, f'{regval(rs1(instr), ops.rs1)}, {regval(rs2(instr), ops.rs2)}, {hex32(im.sb)} {target(pc+im.sb)}'
def fmt_r(name, instr, pc, ops, im): return name, f'x{rd(instr)}, {regval(rs1(instr), ops.rs1)}, {regval(rs2(instr), ops.rs2)}'

def fmt_csr(name, instr, pc, ops, im):
    src = hex32(im.z) if bits(instr, 14, 14) else regval(rs1(instr), ops.rs1)
    return name, f'x{rd(instr)}, 0x{bits(instr, 31, 20):03x}, {src}'

def fmt_load(name, instr, pc, ops, im):
    size, indexed, post = bits(instr, 14, 12), False, bits(instr, 6, 0) == OPCODE_LOAD_POST
    if size == 0b111: size, indexed = bits(instr, 27, 25), True  # reg-reg: real size sits in funct7
    if size not in load_sizes: return INVALID, ''
    name, base = load_sizes[size] + ('RR' if indexed else '') + ('POST' if post else ''), f'x{rs1(instr)}' + ('!' if post else '')
    if indexed: return name, f'x{rd(instr)}, x{rs2(instr)}({base}) {target(ops.rs1 if post else ops.rs1+ops.rs2)}'
    return name, f'x{rd(instr)}, {hex32(im.i)}({base}) {target(ops.rs1 if post else im.i+ops.rs1)}'

def fmt_store(name, instr, pc, ops, im):
    size, indexed, post = bits(instr, 13, 12), bits(instr, 14, 14), bits(instr, 6, 0) == OPCODE_STORE_POST
    if size not in store_sizes: return INVALID, ''
    name, base = store_sizes[size] + ('RR' if indexed else '') + ('POST' if post else ''), f'x{rs1(instr)}' + ('!' if post else '')
    if indexed: return name, f'{regval(rs2(instr), ops.rs2)}, x{rd(instr)}({base}) {target(ops.rs1 if post else ops.rs1+ops.rs3)}'  # index register in rd slot
    return name, f'{regval(rs2(instr), ops.rs2)}, {hex32(im.s)}({base}) {target(ops.rs1 if post else im.s+ops.rs1)}'

@functools.cache
def warn_unassigned_hwloop(): logger.warning('hardware loop sub-op 0b110 has no mnemonic; traced with an empty line')

def fmt_hwloop(name, instr, pc, ops, im):
    op = bits(instr, 14, 12)
    if op == 0b111: return INVALID, ''
    if op not in hwloops: warn_unassigned_hwloop(); return '', ''  # 0b110 is unassigned: no mnemonic, no operands
    name = hwloops[op]
    if name in ('LSTARTI', 'LENDI'): return name, f'{hex32(im.iz)} {target(pc+(im.iz<<1))}'
    if name == 'LCOUNT': return name, regval(rs1(instr), ops.rs1)
    if name == 'LCOUNTI': return name, hex32(im.iz)
    if name == 'LSETUP': return name, f'{regval(rs1(instr), ops.rs1)}, {hex32(im.iz)} {target(pc+(im.iz<<1))}'
    # TODO: check against the core's loop controller whether LSETUPI's end offset really comes from imm_z and not imm_iz like LSETUP
    return name, f'{regval(rs1(instr), ops.rs1)}, {hex32(im.iz)} {target(pc+(im.z<<1))}'

formatters = {'bare': fmt_bare, 'u': fmt_u, 'uj': fmt_uj, 'i': fmt_i, 'sb': fmt_sb, 'r': fmt_r, 'mul': fmt_r,
              'csr': fmt_csr, 'load': fmt_load, 'store': fmt_store, 'hwloop': fmt_hwloop}

@functools.lru_cache(maxsize=4096)
def lookup(instr):  # first matching decode table entry, None if the word is not implemented
    for mask, match, op in mask_match:
        if instr & mask == match: return op
    return None

def format_instr(instr, pc=0, ops=operands(), im=None, compressed=False):
    """Renders one instruction as a trace line: mnemonic, operands with their values, computed addresses.

    Never raises; words outside the decode table come out as INVALID. Without im, immediates are taken from the word itself.
    """
    instr, pc = zext(32, instr), zext(32, pc)
    im = imms.from_instr(instr) if im is None else im
    name, args = INVALID, ''
    if op := lookup(instr): name, args = formatters[op['fmt']](op['name'], instr, pc, ops, im)
    if compressed and name not in ('', INVALID): name = 'C.' + name  # INVALID and the empty 0b110 line stay unprefixed
    return f'{name:10} {args}'.rstrip()
