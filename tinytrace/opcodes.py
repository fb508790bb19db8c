import importlib.resources, yaml

OPCODE_LOAD_POST, OPCODE_STORE_POST = 0x0b, 0x2b

def load_table(path=None):  # returns [(mask, match, op)] in priority order
    path = path or importlib.resources.files('tinytrace') / 'tracer_opcodes.yaml'
    with open(path) as f: ops = yaml.safe_load(f)
    for op in ops:
        if op['mask'] is None or op['fmt'] is None: raise ValueError(f'incomplete decode table entry: {op}')
    return [(int(op['mask'], 16), int(op['match'], 16), op) for op in ops]

mask_match = load_table()
