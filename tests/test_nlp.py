"""Tests for the reminder request parser."""

import pytest

from anchorweek.db.models import WEEKDAYS, Day
from anchorweek.parser.nlp import match_anchor_title, parse_day_list, parse_reminder_request
from anchorweek.utils.errors import CollaboratorError, ValidationError

TITLES = ["Gym Session", "Deep Work", "Work/School"]


def test_parse_minutes_before():
    """Test a plain 'N minutes before' request."""
    request = parse_reminder_request("Remind me to pack my gym bag 30 minutes before Gym Session", TITLES)

    assert request.anchor_title == "Gym Session"
    assert request.offset_minutes == -30
    assert request.message == "Pack my gym bag"
    assert request.why == "Because you asked to be reminded."


def test_parse_hours_after():
    """Hours are converted to minutes; 'after' is positive."""
    request = parse_reminder_request("stretch 1 hour after deep work", TITLES)

    assert request.anchor_title == "Deep Work"
    assert request.offset_minutes == 60
    assert request.message == "Stretch"


def test_parse_at_start():
    """Test 'at the start of' requests."""
    request = parse_reminder_request("check my calendar at the start of Work/School", TITLES)

    assert request.anchor_title == "Work/School"
    assert request.offset_minutes == 0
    assert request.message == "Check my calendar"


def test_parse_when_starts():
    """Test 'when X starts' requests."""
    request = parse_reminder_request("fill water bottle when gym session starts", TITLES)

    assert request.anchor_title == "Gym Session"
    assert request.offset_minutes == 0


def test_parse_unknown_title_passes_through():
    """The parser only proposes a title; validation happens later."""
    request = parse_reminder_request("buy flowers 10 min before Date Night", TITLES)

    assert request.anchor_title == "Date Night"
    assert request.offset_minutes == -10


def test_parse_failure():
    """Unparseable text raises a collaborator error."""
    for text in ("", "   ", "do the thing sometime", "30 minutes before Gym Session"):
        with pytest.raises(CollaboratorError):
            parse_reminder_request(text, TITLES)


def test_match_anchor_title():
    """Exact matches win over partial ones."""
    assert match_anchor_title("work/school", TITLES) == "Work/School"
    assert match_anchor_title("my Deep Work block", TITLES) == "Deep Work"
    assert match_anchor_title(" 'Gym Session' ", TITLES) == "Gym Session"
    assert match_anchor_title("Choir", TITLES) == "Choir"


def test_parse_day_list():
    """Test day selections from command arguments."""
    assert parse_day_list("Mon,Wed") == [Day.MONDAY, Day.WEDNESDAY]
    assert parse_day_list("mon-fri") == list(WEEKDAYS)
    assert parse_day_list("weekends") == [Day.SATURDAY, Day.SUNDAY]
    assert parse_day_list("daily") == list(Day)
    assert parse_day_list("Sat-Mon") == [Day.SATURDAY, Day.SUNDAY, Day.MONDAY]
    assert parse_day_list("Mon,mon,Monday") == [Day.MONDAY]


def test_parse_day_list_invalid():
    """Test day selection errors."""
    with pytest.raises(ValidationError):
        parse_day_list("Funday")
    with pytest.raises(ValidationError):
        parse_day_list(",")
