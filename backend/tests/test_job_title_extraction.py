import pytest

from recruit_triage.job_title_extraction import (
    clean_job_title,
    find_job_title,
    is_plausible_job_title,
    strip_reply_prefix,
)


@pytest.mark.parametrize(
    "subject,expected",
    [
        ("Application for Senior Backend Developer", "Senior Backend Developer"),
        ("Application for React Developer (Remote)", "React Developer"),
        ("Re: Application for Node.js Developer Position", "Node.js Developer"),
        ("Fwd: Applying for the Product Designer role", "Product Designer"),
        ("New application for the position of QA Tester at Acme", "QA Tester"),
        ("[Action required] New application for Node Developer, Pune", "Node Developer"),
        ("New Message from Jane Doe - React Developer", "React Developer"),
        ("Job Opening: HR Recruiter [Ref 12]", "HR Recruiter"),
        ("Flutter Developer - Immediate Joiner", "Flutter Developer"),
        ("Submission of Resume - QA Tester", "QA Tester"),
    ],
)
def test_subject_templates(subject, expected):
    assert find_job_title(subject) == expected


@pytest.mark.parametrize(
    "body,expected",
    [
        ("Hello team, I am applying for the Backend Engineer position. Thanks.", "Backend Engineer"),
        ("I'm interested in the Data Analyst role at your company.", "Data Analyst"),
        ("I would like to confirm for the UI Designer position.", "UI Designer"),
        ("I wish to apply to the post of Marketing Manager at Acme.", "Marketing Manager"),
    ],
)
def test_body_templates(body, expected):
    assert find_job_title("Hello", body) == expected


def test_subject_wins_over_body():
    assert find_job_title(
        "Application for Web Designer",
        "I am applying for the Backend Engineer position.",
    ) == "Web Designer"


def test_body_match_requires_role_keyword():
    # "applying for this opportunity" has no role word; the body rule must not fire
    assert find_job_title("Hi", "I am applying for this opportunity. Regards.") is None


@pytest.mark.parametrize("subject", ["", "Hello", "Re: Opportunity", "Quick question"])
def test_no_match_returns_none(subject):
    assert find_job_title(subject, "") is None


def test_never_raises_on_none():
    assert find_job_title(None, None) is None


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('"Senior Backend Engineer" at Acme', "Senior Backend Engineer"),
        ("for the Data Scientist role", "Data Scientist"),
        ("QA Tester (Req 12345)", "QA Tester"),
        ("Designer position", "Designer"),
    ],
)
def test_clean_job_title_strips_wrappers(raw, expected):
    assert clean_job_title(raw) == expected


def test_strip_reply_prefix_repeated():
    assert strip_reply_prefix("Re: Fwd: RE: Application for X") == "Application for X"
    assert strip_reply_prefix("回复: Developer") == "Developer"


def test_plausibility_bounds():
    assert not is_plausible_job_title("QA")
    assert not is_plausible_job_title("x" * 61)
    assert is_plausible_job_title("Backend Engineer", require_role_keyword=True)
    assert not is_plausible_job_title("this opportunity", require_role_keyword=True)
