import pytest

from recruit_triage.grounding import (
    GROUNDED_CONFIDENCE_FLOOR,
    UNGROUNDED_CONFIDENCE_FLOOR,
    acceptance_floor,
    contains_keyword,
    effective_trust,
    find_keywords,
    is_grounded,
    is_trusted,
)
from recruit_triage.schemas import MatchKind


@pytest.mark.parametrize(
    "candidate,source,kind",
    [
        ("Backend Developer", "Applying for the backend   developer role", MatchKind.EXACT),
        ("UI/UX Designer", "5 years as a UI/UX Designer", MatchKind.EXACT),
        ("Frontend/Backend Developer", "I do frontend work and backend developer tasks", MatchKind.PARTIAL_COMPOSED),
        ("Sales & Marketing", "Open to sales roles or marketing roles", MatchKind.PARTIAL_COMPOSED),
        ("Chief Astronaut", "Application for Backend Developer", MatchKind.NONE),
        ("Frontend/Backend Developer", "frontend only", MatchKind.NONE),
        ("", "anything", MatchKind.NONE),
        ("Developer", "", MatchKind.NONE),
    ],
)
def test_is_grounded(candidate, source, kind):
    verdict = is_grounded(candidate, source)
    assert verdict.match_kind == kind
    assert verdict.exists is (kind != MatchKind.NONE)


def test_grounding_is_case_and_whitespace_insensitive():
    assert is_grounded("  SENIOR\nBackend  Developer ", "senior backend developer wanted").exists


def test_acceptance_floor_depends_on_grounding():
    assert acceptance_floor(is_grounded("dev", "dev")) == GROUNDED_CONFIDENCE_FLOOR
    assert acceptance_floor(is_grounded("dev", "ops")) == UNGROUNDED_CONFIDENCE_FLOOR


def test_ungrounded_claim_is_never_trusted_even_when_confident():
    verdict = is_grounded("Chief Astronaut", "Application for Backend Developer")
    assert effective_trust(0.99, verdict) == 0.0
    assert not is_trusted(0.99, verdict)


@pytest.mark.parametrize("confidence,trusted", [(0.05, False), (0.1, True), (0.9, True)])
def test_grounded_claim_needs_the_low_floor(confidence, trusted):
    verdict = is_grounded("Backend Developer", "Backend Developer")
    assert is_trusted(confidence, verdict) is trusted


def test_keywords_are_token_bounded():
    assert find_keywords("My CV is attached", ["cv"]) == ["cv"]
    assert find_keywords("We sell CVS pharmacy gift cards", ["cv"]) == []
    assert contains_keyword("john_resume.pdf", ["resume"])
    assert contains_keyword("with 4+ years of experience in sales", [], [r"with \d+\+? years of experience"])
