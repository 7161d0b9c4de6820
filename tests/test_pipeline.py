import pytest

from fakes import FakeSink, write_pdf
from remote_print.core.errors import RenderError
from remote_print.printing.models import Duplex, PrintJob
from remote_print.printing.pipeline import PageFeeder, PrintPipeline, build_page_setup, match_paper_size
from remote_print.printing.render import open_document


def _job(**fields):
    base = {"job_id": 1, "file": "a.pdf", "start_page": 1, "end_page": 3, "copies": 1}
    base.update(fields)
    return PrintJob.model_validate(base)


@pytest.fixture
def five_pages(tmp_path):
    return write_pdf(tmp_path / "a.pdf", pages=5)


def test_prints_requested_range(five_pages):
    sink = FakeSink()
    pipeline = PrintPipeline(sink, printer_name="Office", dpi=72)

    result = pipeline.print_job(_job(), five_pages)

    assert result.ok
    assert result.pages_printed == 3
    assert len(sink.sheet_sizes) == 3
    assert all(size == sink.printable for size in sink.sheet_sizes)
    # The sink stops asking after the last page
    assert sink.calls == 3


def test_cursor_ends_after_last_requested_page(five_pages):
    doc = open_document(five_pages)
    feeder = PageFeeder(doc, _job(), dpi=72)
    try:
        assert feeder.cursor == 0
        more = True
        while more:
            sheet, more = feeder((100, 100))
            sheet.close()
    finally:
        doc.close()
    assert feeder.cursor == 3
    assert feeder.pages_rendered == 3


def test_end_page_beyond_document_is_clamped(five_pages):
    sink = FakeSink()
    result = PrintPipeline(sink, dpi=72).print_job(_job(end_page=100), five_pages)
    assert result.ok
    assert result.pages_printed == 5


@pytest.mark.parametrize(
    "start,end,expected",
    [(1, 3, 3), (2, 2, 1), (4, 100, 2), (6, 9, 0), (4, 2, 0), (1, 5, 5), (1, 0, 0), (0, 2, 2)],
)
def test_page_count_matches_range_formula(five_pages, start, end, expected):
    sink = FakeSink()
    result = PrintPipeline(sink, dpi=72).print_job(_job(start_page=start, end_page=end), five_pages)
    assert result.ok
    assert result.pages_printed == expected == max(0, min(5, end) - (max(1, start) - 1))
    assert len(sink.sheet_sizes) == expected


def test_empty_range_renders_nothing_on_first_callback(five_pages):
    doc = open_document(five_pages)
    try:
        feeder = PageFeeder(doc, _job(start_page=7, end_page=9), dpi=72)
        assert feeder((100, 100)) == (None, False)
        assert feeder.cursor == 6
    finally:
        doc.close()


def test_missing_page_fields_print_nothing_but_succeed(five_pages):
    sink = FakeSink()
    job = PrintJob.model_validate({"job_id": 9, "file": "a.pdf"})
    result = PrintPipeline(sink, dpi=72).print_job(job, five_pages)
    assert result.ok
    assert result.pages_printed == 0
    assert sink.sheet_sizes == []
    assert sink.calls == 1
    setup = sink.setups[0]
    assert setup.copies == 1
    assert setup.landscape is False
    assert setup.duplex is Duplex.SIMPLEX
    assert setup.paper_size is None


def test_page_setup_maps_job_attributes():
    job = _job(copies=2, duplex="vertical", orientation="LANDSCAPE", paper_size="Letter", color_mode="grayscale")
    setup = build_page_setup(job, "HP LaserJet 1018", ["A4", "Letter"])
    assert setup.printer_name == "HP LaserJet 1018"
    assert setup.document_name == "a.pdf"
    assert setup.copies == 2
    assert setup.duplex is Duplex.VERTICAL
    assert setup.landscape is True
    assert setup.monochrome is True
    assert setup.paper_size == "Letter"
    assert setup.margins == (0, 0, 0, 0)


def test_paper_size_match_is_exact():
    assert match_paper_size("A4", ["A4", "Letter"]) == "A4"
    assert match_paper_size("a4", ["A4", "Letter"]) is None
    assert match_paper_size("", ["A4"]) is None
    assert match_paper_size("Tabloid", []) is None


def test_corrupt_document_fails_without_raising(tmp_path):
    bad = tmp_path / "bad.pdf"
    bad.write_bytes(b"%PDF-garbage")
    sink = FakeSink()
    result = PrintPipeline(sink, dpi=72).print_job(_job(file="bad.pdf"), bad)
    assert not result.ok
    assert isinstance(result.error, RenderError)
    assert sink.setups == []


def test_sink_failure_mid_document_is_reported(five_pages):
    sink = FakeSink(fail_on_call=2)
    result = PrintPipeline(sink, dpi=72).print_job(_job(), five_pages)
    assert not result.ok
    assert "paper jam" in str(result.error)
    assert result.pages_printed == 1
