from typing import get_args

import pytest
from callforward.config import RoutingConfig
from callforward.routing import Dial, Hangup, Intent, Record, Reject, Say
from callforward.twiml import render


def test_say_uses_configured_voice():
    xml = render([Say("Hello")], RoutingConfig(voice="Polly.Matthew", language="en-GB"))
    assert 'voice="Polly.Matthew"' in xml
    assert 'language="en-GB"' in xml
    assert ">Hello</Say>" in xml


def test_default_voice():
    xml = render([Say("Hello")])
    assert 'voice="Polly.Joanna"' in xml
    assert 'language="en-US"' in xml


def test_dial_attributes():
    xml = render([Dial(number="+15125550001", timeout=15, caller_id="+15125550000", action="/call-forwarding")])
    assert 'action="/call-forwarding"' in xml
    assert 'callerId="+15125550000"' in xml
    assert 'method="POST"' in xml
    assert 'timeout="15"' in xml
    assert "<Number>+15125550001</Number>" in xml


def test_dial_without_action_or_caller_id():
    xml = render([Dial(number="+15125550001", timeout=15)])
    assert "action=" not in xml
    assert "callerId=" not in xml


def test_record_attributes():
    xml = render([Record(max_length=120, transcribe=True, transcribe_callback="/voicemail-callback")])
    assert 'maxLength="120"' in xml
    assert 'transcribe="true"' in xml
    assert 'transcribeCallback="/voicemail-callback"' in xml
    assert 'playBeep="true"' in xml


def test_reject_and_hangup():
    xml = render([Reject("rejected"), Hangup()])
    assert '<Reject reason="rejected" />' in xml or '<Reject reason="rejected"/>' in xml
    assert "<Hangup" in xml


def test_preserves_order():
    xml = render([Say("first"), Say("second"), Hangup()])
    assert xml.index("first") < xml.index("second") < xml.index("Hangup")


def test_document_is_a_response():
    xml = render([Hangup()])
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?><Response>')


def test_unknown_intent_raises():
    with pytest.raises(TypeError):
        render(["not an intent"])


def test_every_intent_type_renders():
    samples = {
        Say: Say("hello"),
        Dial: Dial("+15125550001", timeout=15),
        Record: Record(max_length=120),
        Reject: Reject(),
        Hangup: Hangup(),
    }
    assert set(get_args(Intent)) == set(samples)
    xml = render(list(samples.values()))
    for tag in ("<Say", "<Dial", "<Record", "<Reject", "<Hangup"):
        assert tag in xml
