import json

import pytest

from callforward.call_signal import CallSignal, SpamAnnotation, parse_spam_annotation


def _add_ons(match=1, score=80, status="successful", addon_status="successful"):
    return json.dumps({
        "status": status,
        "results": {
            "truecnam_truespam": {
                "status": addon_status,
                "result": {"spam_score_match": match, "spam_score": score},
            }
        },
    })


class TestCallSignal:
    def test_initial_leg_has_no_dial_status(self):
        signal = CallSignal.from_form({"From": "+15125551234", "CallSid": "CA1"})
        assert signal.is_initial_leg
        assert not signal.is_connected
        assert signal.caller == "+15125551234"
        assert signal.call_sid == "CA1"

    def test_no_answer_is_forwarded_leg(self):
        signal = CallSignal.from_form({"From": "+15125551234", "DialCallStatus": "no-answer"})
        assert not signal.is_initial_leg
        assert not signal.is_connected

    def test_completed_and_answered_are_connected(self):
        for status in ("completed", "answered", "Completed"):
            signal = CallSignal.from_form({"DialCallStatus": status})
            assert signal.is_connected

    def test_blank_status_counts_as_initial(self):
        signal = CallSignal.from_form({"From": "+15125551234", "DialCallStatus": ""})
        assert signal.is_initial_leg

    def test_parses_add_ons(self):
        signal = CallSignal.from_form({"From": "+15125551234", "AddOns": _add_ons(score=90)})
        assert signal.spam == SpamAnnotation(matched=True, score=90.0)


class TestParseSpamAnnotation:
    def test_missing_payload(self):
        assert parse_spam_annotation(None) is None
        assert parse_spam_annotation("") is None

    def test_matched_score(self):
        assert parse_spam_annotation(_add_ons(match=1, score=75)) == SpamAnnotation(True, 75.0)

    def test_string_score_is_coerced(self):
        assert parse_spam_annotation(_add_ons(match="1", score="82")) == SpamAnnotation(True, 82.0)

    def test_no_match(self):
        annotation = parse_spam_annotation(_add_ons(match=0, score=99))
        assert annotation is not None
        assert annotation.matched is False

    def test_unsuccessful_add_ons(self):
        assert parse_spam_annotation(_add_ons(status="failed")) is None

    def test_unsuccessful_truespam(self):
        assert parse_spam_annotation(_add_ons(addon_status="failed")) is None

    def test_invalid_json_fails_open(self, caplog):
        assert parse_spam_annotation("{not json") is None
        assert "not valid JSON" in caplog.text

    def test_non_numeric_score_fails_open(self):
        assert parse_spam_annotation(_add_ons(score="high")) is None

    def test_missing_result_fails_open(self):
        payload = json.dumps({
            "status": "successful",
            "results": {"truecnam_truespam": {"status": "successful"}},
        })
        assert parse_spam_annotation(payload) is None

    def test_accepts_decoded_dict(self):
        assert parse_spam_annotation(json.loads(_add_ons(score=10))) == SpamAnnotation(True, 10.0)


@pytest.mark.parametrize("flag", [1, "1", True, "true", 1.0])
def test_match_flag_encodings(flag):
    assert parse_spam_annotation(_add_ons(match=flag, score=90)) == SpamAnnotation(matched=True, score=90.0)


@pytest.mark.parametrize("flag", [0, "0", False, "false", None, 2])
def test_non_match_flag_encodings(flag):
    assert parse_spam_annotation(_add_ons(match=flag, score=90)).matched is False
