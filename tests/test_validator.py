from invoice_intake.config import LEGACY_EXCEL, MAX_FILE_SIZE, MODERN_EXCEL, PDF
from invoice_intake.schemas import RejectionReason, UploadCandidate
from invoice_intake.validator import FileValidator


def _sized(name, content_type, size):
    return UploadCandidate(name=name, content_type=content_type, size=size)


class TestFileValidator:
    def test_accepts_pdf_and_both_excel_types(self):
        validator = FileValidator()
        for content_type in (PDF, LEGACY_EXCEL, MODERN_EXCEL):
            assert validator.check(_sized("f", content_type, 100)) is None

    def test_rejects_unknown_type(self):
        rejection = FileValidator().check(_sized("notes.txt", "text/plain", 10))
        assert rejection is not None
        assert rejection.reason is RejectionReason.UNSUPPORTED_TYPE
        assert rejection.file_name == "notes.txt"

    def test_size_limit_is_inclusive(self):
        validator = FileValidator()
        assert validator.check(_sized("edge.pdf", PDF, MAX_FILE_SIZE)) is None
        rejection = validator.check(_sized("big.pdf", PDF, MAX_FILE_SIZE + 1))
        assert rejection is not None
        assert rejection.reason is RejectionReason.TOO_LARGE
        assert "10 MB" in rejection.message

    def test_screen_collects_rejections_and_keeps_order(self):
        candidates = [
            _sized("a.pdf", PDF, 1),
            _sized("b.txt", "text/plain", 1),
            _sized("c.xlsx", MODERN_EXCEL, 1),
            _sized("d.pdf", PDF, 20 * 1024 * 1024),
        ]
        result = FileValidator().screen(candidates)
        assert [c.name for c in result.accepted] == ["a.pdf", "c.xlsx"]
        assert [r.file_name for r in result.rejected] == ["b.txt", "d.pdf"]

    def test_custom_limits(self):
        validator = FileValidator(accepted_types=[PDF], max_size=5)
        assert validator.check(_sized("a.xlsx", MODERN_EXCEL, 1)) is not None
        assert validator.check(_sized("a.pdf", PDF, 6)) is not None
        assert validator.check(_sized("a.pdf", PDF, 5)) is None
