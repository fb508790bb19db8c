import copy, random, dataclasses
import pytest

from tinytrace import tracer, core_signals, trace_record, cycle_counter, log_sink, clocked, trace_filename, HEADER, TraceError
from rvenc import i_word, b_word

def lines(path): return path.read_text().splitlines()

def addi(n): return core_signals.retiring(i_word(n, 1, 0b000, 2, 0x13), pc=0x80+4*n, rs1=n)

def test_filename_and_header(tmp_path):
    with tracer(core_id=0x1a, outdir=tmp_path) as tr:
        assert tr.sink.path == tmp_path / 'trace_core_1a.log'
    assert trace_filename(3) == 'trace_core_03.log'
    assert lines(tmp_path / 'trace_core_1a.log') == [HEADER]

def test_record_layout(tmp_path):
    with tracer(0, tmp_path) as tr:
        tr.sampling_edge(core_signals.retiring(b_word(0x10, 7, 6, 0b000), pc=0x100, rs1=5, rs2=3), 1000)
        rec = tr.draining_edge()
    assert rec == trace_record(1000, 0, 0x100, b_word(0x10, 7, 6, 0b000), rec.line)
    time, cycle, pc, instr, line = lines(tmp_path / trace_filename(0))[1].split('\t')
    assert (time, cycle, pc, instr) == ('1000', '0', '0x00000100', f'0x{b_word(0x10, 7, 6, 0b000):08x}')
    assert line.startswith('BEQ') and line.endswith('x6 (0x00000005), x7 (0x00000003), 0x00000010 (-> 0x00000110)')

def test_records_are_immutable():
    rec = trace_record(0, 0, 0, 0x13, 'NOP')
    with pytest.raises(dataclasses.FrozenInstanceError): rec.line = 'ADDI'

def test_capture_guard(tmp_path):
    tr = tracer(0, tmp_path)
    for valid, decoding, flush, captured in [(0,0,0,False), (1,0,0,False), (0,1,0,False), (1,1,0,True), (0,0,1,True), (1,0,1,True)]:
        tr.sampling_edge(core_signals(instr=0x10500073, valid=valid, decoding=decoding, flush=flush), 0)
        assert len(tr.queue) == captured
        tr.queue.clear()

def test_capture_leaves_signals_alone(tmp_path):
    tr, sig = tracer(0, tmp_path), addi(7)
    before = copy.deepcopy(sig)
    tr.sampling_edge(sig, 0)
    assert sig == before

def test_cycle_counter():
    c = cycle_counter()
    assert [c.sample(False) for _ in range(3)] == [1, 2, 3]
    assert c.sample(True) == 0 and c.sample(False) == 1

def test_reset_restarts_cycle_count(tmp_path):
    tr = tracer(0, tmp_path)
    for n in range(5): tr.sampling_edge(core_signals(), n*10)
    assert tr.counter.value == 5
    tr.sampling_edge(core_signals(rst=True), 50)
    tr.sampling_edge(addi(1), 60)
    assert tr.queue[0].cycle == 0

def test_cycle_is_read_before_update(tmp_path):
    tr = tracer(0, tmp_path)
    for n in range(4): tr.sampling_edge(addi(n), n*10)
    assert [rec.cycle for rec in tr.queue] == [0, 1, 2, 3]

def test_fifo_order_under_any_interleaving(tmp_path):
    rnd = random.Random(5)
    with tracer(0, tmp_path) as tr:
        captured, emitted, t = [], [], 0
        for _ in range(400):
            for _ in range(rnd.randrange(3)):  # captures outpacing drains must only grow the queue
                tr.sampling_edge(addi(len(captured) % 2048), t); captured.append(tr.queue[-1]); t += 10
            for _ in range(rnd.randrange(3)):
                if (rec := tr.draining_edge()) is not None: emitted.append(rec)
        while tr.queue: emitted.append(tr.draining_edge())
        assert tr.draining_edge() is None
    assert emitted == captured
    assert len({id(rec) for rec in emitted}) == len(emitted)
    assert lines(tmp_path / trace_filename(0))[1:] == [str(rec) for rec in captured]

def test_close_drops_unflushed(tmp_path):
    tr = tracer(2, tmp_path).open()
    for n in range(3): tr.sampling_edge(addi(n), n)
    tr.draining_edge()
    tr.close()
    tr.close()
    assert not tr.queue
    assert len(lines(tmp_path / trace_filename(2))) == 2

def test_sink_lifecycle(tmp_path):
    sink = log_sink(tmp_path / 'x.log')
    with pytest.raises(TraceError): sink.write(trace_record(0, 0, 0, 0x13, 'NOP'))
    sink.open()
    with pytest.raises(TraceError): sink.open()
    sink.close()
    assert sink.closed
    with pytest.raises(TraceError): sink.open()
    with pytest.raises(TraceError): sink.write(trace_record(0, 0, 0, 0x13, 'NOP'))

def test_compressed_flag(tmp_path):
    tr = tracer(0, tmp_path)
    tr.sampling_edge(core_signals.retiring(0x13, compressed=True), 0)
    tr.sampling_edge(core_signals(valid=True, decoding=True, instr=0xffffffff, compressed=True), 10)
    assert [rec.line for rec in tr.queue] == ['C.NOP', 'INVALID']
    assert not hasattr(tr.queue[0], 'compressed')

def test_clocked(tmp_path):
    samples = [addi(0), core_signals(), core_signals(rst=True), addi(1), core_signals(flush=True, instr=0x10200073)]
    with tracer(0, tmp_path) as tr: recs = list(clocked(tr, samples, period=10, start=100))
    assert [(r.time, r.cycle) for r in recs] == [(100, 0), (130, 0), (140, 1)]
    assert recs[-1].line == 'WFI'
    assert len(lines(tmp_path / trace_filename(0))) == 4
