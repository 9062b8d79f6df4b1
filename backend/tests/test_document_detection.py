import pytest

from recruit_triage.collaborators import AttachmentRef
from recruit_triage.document_detection import (
    count_template_placeholders,
    detect_cover_letter,
    detect_resume,
    filename_has_keyword,
    has_cover_letter,
    has_resume,
    looks_like_resume_text,
)
from recruit_triage.schemas import Evidence

RESUME_TEXT = "EDUCATION\nB.Tech 2020\nSKILLS\nPython, SQL\nPROJECTS\nInventory app\nEXPERIENCE\nAcme Corp"

COVER_LETTER_BODY = (
    "Dear Hiring Manager, I am writing to express my interest in the Backend Developer role. "
    "I have built APIs in Python for three years and I would love the opportunity to join your team."
)


class FakeFetcher:
    def __init__(self, data=b"%PDF-1.4 fake"):
        self.data = data
        self.calls = []

    async def __call__(self, message_id, attachment_id):
        self.calls.append((message_id, attachment_id))
        return self.data


def fake_decoder(text):
    def decode(filename, data):
        return text
    return decode


def test_explicit_resume_link_in_body(run):
    """Scenario D."""
    body = "Name: Jane\nResume: https://indeed.com/r/abc.pdf\nCover letter: n/a"
    signal = run(detect_resume(body, []))
    assert signal.present
    assert signal.evidence == Evidence.EXPLICIT_LINK
    assert signal.detail == "https://indeed.com/r/abc.pdf"


def test_resume_link_from_caller(run):
    assert run(detect_resume("", [], resume_link="https://drive.example/cv")).evidence == Evidence.EXPLICIT_LINK


@pytest.mark.parametrize("filename", [
    "Jane_Resume.pdf", "CV-2024.docx", "my portfolio.pdf", "Curriculum Vitae.doc",
    "JaneDoeResume.pdf", "MyCV.pdf", "resume2024.pdf", "Curriculum_Vitae.doc",
])
def test_resume_filename_keywords(run, filename):
    signal = run(detect_resume("Hello", [AttachmentRef(filename=filename)]))
    assert signal.evidence == Evidence.FILENAME_KEYWORD
    assert signal.detail == filename


def test_filename_keyword_is_substring_match():
    assert filename_has_keyword("JaneDoeResume.pdf", ("resume", "cv")) == "resume"
    assert filename_has_keyword("scan_001.pdf", ("resume", "cv")) is None
    assert filename_has_keyword(None, ("resume",)) is None


def test_resume_body_phrase(run):
    signal = run(detect_resume("Hi, please find my resume attached. Thanks", []))
    assert signal.evidence == Evidence.BODY_KEYWORD


def test_content_sniffing_with_downloaded_data(run):
    ref = AttachmentRef(filename="document.pdf", data=b"%PDF-1.4 fake")
    signal = run(detect_resume("See attached.", [ref], decode_attachment=fake_decoder(RESUME_TEXT)))
    assert signal.evidence == Evidence.CONTENT_SNIFFED
    assert signal.detail == "document.pdf"


def test_content_sniffing_fetches_missing_data(run):
    fetcher = FakeFetcher()
    ref = AttachmentRef(filename="scan.docx", attachment_id="att-1", message_id="msg-1")
    signal = run(detect_resume(
        "See attached.", [ref], fetch_attachment=fetcher, decode_attachment=fake_decoder(RESUME_TEXT),
    ))
    assert signal.evidence == Evidence.CONTENT_SNIFFED
    assert fetcher.calls == [("msg-1", "att-1")]


def test_content_sniffing_uses_decoded_text_when_given(run):
    ref = AttachmentRef(filename="document.pdf", text="Curriculum Vitae of Jane Doe")
    assert run(detect_resume("See attached.", [ref])).evidence == Evidence.CONTENT_SNIFFED


def test_content_sniffing_skips_other_types(run):
    ref = AttachmentRef(filename="photo.png", data=b"\x89PNG")
    assert not run(detect_resume("See attached.", [ref], decode_attachment=fake_decoder(RESUME_TEXT)))


def test_decode_failure_is_logged_and_skipped(run):
    def broken(filename, data):
        raise OSError("corrupt")

    refs = [AttachmentRef(filename="a.pdf", data=b"x"), AttachmentRef(filename="b.pdf", data=b"y")]
    assert not run(detect_resume("See attached.", refs, decode_attachment=broken)).present


def test_generic_keyword_sweep_is_last(run):
    signal = run(detect_resume("My CV is available on request.", []))
    assert signal.evidence == Evidence.GENERIC_KEYWORD


def test_no_resume(run):
    signal = run(detect_resume("Hello, I'd like to know more about the company.", []))
    assert not signal
    assert signal.evidence == Evidence.NONE
    assert run(has_resume("Hello", [])) is False


@pytest.mark.parametrize(
    "text,expected",
    [
        (RESUME_TEXT, True),
        ("Resume of John", True),
        ("Skills and education only", False),
        ("", False),
    ],
)
def test_looks_like_resume_text(text, expected):
    assert looks_like_resume_text(text) is expected


def test_template_boilerplate_is_not_a_cover_letter():
    """Scenario E."""
    body = (
        "Dear Hiring Manager, I am excited to apply for the [Job Title] role at [Company Name]. "
        "I believe my skills match your needs and I look forward to hearing from you. "
        "Sincerely yours, [Your Name]"
    )
    assert count_template_placeholders(body) == 3
    signal = detect_cover_letter(body, ["cover_letter.pdf"])
    assert not signal.present
    assert signal.evidence == Evidence.TEMPLATE_REJECTED


def test_two_placeholders_still_allowed():
    body = COVER_LETTER_BODY + " Best regards, [Your Name] [Date]"
    assert has_cover_letter(body)


@pytest.mark.parametrize("filename", [
    "Cover Letter - Jane.pdf", "coverletter.docx", "Motivation Letter.pdf", "JaneCoverLetter.pdf", "Motivation_Letter.pdf",
])
def test_cover_letter_filename(filename):
    signal = detect_cover_letter("Hi", [filename])
    assert signal.evidence == Evidence.FILENAME_KEYWORD


def test_cover_letter_body_phrase_needs_substance():
    assert detect_cover_letter(COVER_LETTER_BODY).evidence == Evidence.BODY_KEYWORD
    assert not has_cover_letter("Dear Hiring Manager, see attached.")


def test_cover_letter_years_pattern():
    body = (
        "Hello there, applying with 4 years of experience building payment systems in Go and "
        "Kotlin across two companies, happy to share more details whenever it suits you."
    )
    assert has_cover_letter(body)
