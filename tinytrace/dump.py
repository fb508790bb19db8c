import os, sys, struct, argparse, logging, pathlib
import lief
from .common import TraceError, xfmt
from .disasm import format_instr, lookup
from .tracer import tracer, clocked, trace_filename
from .sample import read_samples

logger = logging.getLogger(__name__)

def elf_text(path):  # .text contents and load address of an ELF file
    elf = lief.parse(str(path))
    if elf is None: raise TraceError(f'{path}: cannot parse as ELF')
    if not elf.has_section('.text'): raise TraceError(f'{path}: no .text section')
    text = elf.get_section('.text')
    return bytes(text.content), text.virtual_address

def wordsplitter(*data, base=0):  # yields addresses and 32-bit instruction words from a file or from hex words / ints.
    if len(data) == 1 and isinstance(data[0], str) and os.path.isfile(data[0]):
        with open(data[0], 'rb') as f: raw = f.read()
        if raw[:4] == b'\x7fELF': raw, base = elf_text(data[0])
    elif len(data) == 1 and isinstance(data[0], (bytes, bytearray)): raw = bytes(data[0])
    else:
        words = [int(d, 16) if isinstance(d, str) else d for d in data]
        if bad := [w for w in words if not 0 <= w < 1<<32]: raise ValueError(f'not a 32-bit word: {bad[0]:x}')
        raw = struct.pack(f'<{len(words)}I', *words)
    if len(raw) % 4: logger.warning(f'ignoring {len(raw)%4} trailing bytes')
    for n, (instr,) in enumerate(struct.iter_unpack('<I', raw[:len(raw)//4*4])): yield int(base)+n*4, instr

def setup_logging(verbose):
    logging.basicConfig(level=logging.DEBUG if verbose > 1 else logging.INFO if verbose else logging.WARNING, format='%(levelname)s %(name)s: %(message)s')

def main_dump(argv=None):
    parser = argparse.ArgumentParser(
                    prog='tinytrace-dump',
                    description='Formats instruction words like the tracer does (operand values read as zero).')
    parser.add_argument('-v', '--verbose', action='count', default=0)
    parser.add_argument('-b', '--base', type=lambda s: int(s, 16), default=0, help='address of the first word (hex)')
    parser.add_argument('data', nargs='+', help='file.bin, file.elf or hex words')
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        for addr, instr in wordsplitter(*args.data, base=args.base):
            line = f'{xfmt(32, addr)}: {xfmt(32, instr)}  {format_instr(instr, addr)}'
            print(line if lookup(instr) else f'{line:60} # not implemented')
    except (TraceError, ValueError) as e: parser.exit(1, f'{parser.prog}: error: {e}\n')
    return 0

def main_drive(argv=None):
    parser = argparse.ArgumentParser(
                    prog='tinytrace-drive',
                    description='Drives a tracer from a captured signal file and writes its trace log.')
    parser.add_argument('-v', '--verbose', action='count', default=0)
    parser.add_argument('-c', '--core-id', type=lambda s: int(s, 0), default=0)
    parser.add_argument('-o', '--outdir', type=pathlib.Path, default=pathlib.Path('.'))
    parser.add_argument('-p', '--period', type=int, default=10, help='clock period in time units')
    parser.add_argument('samples', type=pathlib.Path)
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    if not args.samples.is_file(): parser.error(f'{args.samples}: no such file')
    if not args.outdir.is_dir(): parser.error(f'{args.outdir}: no such directory')
    try:
        with tracer(args.core_id, args.outdir) as tr: written = sum(1 for _ in clocked(tr, read_samples(args.samples), period=args.period))
    except TraceError as e: parser.exit(1, f'{parser.prog}: error: {e}\n')
    logger.info(f'{written} records written to {args.outdir / trace_filename(args.core_id)}')
    return 0

if __name__ == '__main__': sys.exit(main_dump())
