from chat_core.streaming.event_classifier import EventClassifier


def _events(lines):
    return list(EventClassifier().classify_lines(lines))


def test_classifier_data_lines_are_trimmed():
    events = _events(["data:   {\"content\": \"a\"}  ", "", "data: plain"])
    assert [(e.kind, e.payload) for e in events] == [
        ("data", '{"content": "a"}'),
        ("data", "plain"),
    ]


def test_classifier_done_sentinel_is_terminal_and_stops():
    clf = EventClassifier()
    events = list(clf.classify_lines(["data: a", "data: [DONE]", "data: b"]))
    assert [e.kind for e in events] == ["data", "terminal"]
    assert clf.finished
    assert clf.classify("data: c") is None


def test_classifier_finish_and_done_events_are_terminal():
    for value in ("finish", "done"):
        events = _events([f"event: {value}", "data: late"])
        assert [(e.kind, e.event_type) for e in events] == [("terminal", value)]


def test_classifier_error_event_tags_next_data_line():
    events = _events(["event: error", "data: {\"error\": \"quota exceeded\"}", ""])
    assert len(events) == 1
    assert events[0].kind == "error"
    assert events[0].payload == '{"error": "quota exceeded"}'


def test_classifier_blank_line_keeps_error_tag():
    events = _events(["event: error", "", "data: boom"])
    assert [e.kind for e in events] == ["error"]


def test_classifier_error_tag_applies_only_once():
    events = _events(["event: error", "data: x", "data: y"])
    assert [e.kind for e in events] == ["error", "data"]


def test_classifier_unrecognized_lines_are_ignored():
    events = _events([": keep-alive", "id: 3", "retry: 100", "data:nospace", "event: message", "data: ok"])
    assert [(e.kind, e.payload) for e in events] == [("data", "ok")]


def test_classifier_unrecognized_line_clears_error_tag():
    events = _events(["event: error", ": comment", "data: fine"])
    assert [e.kind for e in events] == ["data"]


def test_classifier_empty_data_payload_ignored():
    assert _events(["data: ", "data:  "]) == []
