# tests/agents/test_session.py
from agents.session import ConversationSession, SessionStore


def _fill(session, *turns):
    for turn in turns:
        for m in turn:
            session.append(m)


def _turn(i, with_tool=False):
    msgs = [{"role": "user", "content": f"u{i}"}]
    if with_tool:
        msgs += [
            {"role": "assistant", "content": None, "tool_calls": [{"id": f"t{i}", "type": "function",
                                                                  "function": {"name": "searchRoutes", "arguments": "{}"}}]},
            {"role": "tool", "tool_call_id": f"t{i}", "content": "routes: []"},
        ]
    msgs.append({"role": "assistant", "content": f"a{i}"})
    return msgs


def test_trim_cuts_on_user_boundaries():
    s = ConversationSession(session_id="x", max_messages=5)
    _fill(s, _turn(1), _turn(2, with_tool=True), _turn(3))
    s.trim()
    # 8 messages; dropping turn 1 leaves 6 > 5, so turn 2 goes as well
    assert [m["content"] for m in s.messages] == ["u3", "a3"]


def test_trim_never_orphans_tool_results():
    s = ConversationSession(session_id="x", max_messages=4)
    _fill(s, _turn(1), _turn(2, with_tool=True))
    s.trim()
    assert s.messages[0] == {"role": "user", "content": "u2"}
    assert len(s.messages) == 4


def test_oversized_single_turn_is_kept():
    s = ConversationSession(session_id="x", max_messages=2)
    _fill(s, _turn(1, with_tool=True))
    s.trim()
    assert len(s.messages) == 4


def test_history_is_a_copy():
    s = ConversationSession(session_id="x")
    _fill(s, _turn(1))
    h = s.history()
    h.append({"role": "user", "content": "sneaky"})
    assert len(s.messages) == 2


def test_store_creates_once_and_updates_identity():
    store = SessionStore("customer", max_messages=10)
    a = store.get("254712345678", phone_number="254712345678")
    b = store.get("254712345678", display_name="Jane", phone_number=None)
    assert a is b
    assert b.phone_number == "254712345678" and b.display_name == "Jane"
    assert b.max_messages == 10 and b.role == "customer"
    assert "254712345678" in store and len(store) == 1

    assert "0700000000" not in store
    assert store.get("0700000000") is not a and len(store) == 2
