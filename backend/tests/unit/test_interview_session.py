"""Tests for interview session transitions."""

from hypothesis import given
from hypothesis import strategies as st

from intake_pilot.services.interview_session import (
    SESSION_ACTIVE,
    apply_turn,
    start_session,
    summarize_session,
)

_TS = "2030-01-01T00:00:00+00:00"


def _session(missing=("protocol", "vendor_contacts", "locations"), seed=()):
    return start_session(
        intake_id="i1", session_id="s1", missing_fields=list(missing), seed_history=seed
    )


def _turn(**fields):
    return {"assistant_question": "Next?", **fields}


class TestStartSession:
    def test_initial_state(self):
        session = _session(missing=["protocol", "protocol", "locations"])

        assert session["status"] == SESSION_ACTIVE
        assert session["missing_fields_before"] == ["protocol", "locations"]
        assert session["missing_fields_after"] == ["protocol", "locations"]
        assert session["messages"] == []

    def test_seed_history_copied(self):
        seed = [{"role": "user", "content": "hi", "timestamp": None}]

        session = _session(seed=seed)
        session["messages"][0]["content"] = "changed"

        assert seed[0]["content"] == "hi"


class TestApplyTurn:
    def test_turn_appends_user_then_assistant(self):
        state = apply_turn(_session(), user_message="We use AS2", turn=_turn(), timestamp=_TS)

        assert state["messages"] == [
            {"role": "user", "content": "We use AS2", "timestamp": _TS},
            {"role": "assistant", "content": "Next?", "timestamp": _TS},
        ]

    def test_reported_missing_fields_replace_set(self):
        state = apply_turn(
            _session(),
            user_message="AS2",
            turn=_turn(
                updated_fields={"protocol": "AS2"},
                new_missing_fields=["vendor_contacts", "locations"],
            ),
            timestamp=_TS,
        )

        assert state["missing_fields_after"] == ["vendor_contacts", "locations"]
        assert state["resolved_fields"] == ["protocol"]
        assert state["updated_fields"] == {"protocol": "AS2"}

    def test_unreported_missing_fields_are_kept(self):
        session = _session()

        state = apply_turn(session, user_message="hm", turn=_turn(), timestamp=_TS)

        assert state["missing_fields_after"] == session["missing_fields_after"]
        assert state["resolved_fields"] == []

    def test_resolved_field_not_readded_without_reopen(self):
        first = apply_turn(
            _session(),
            user_message="AS2",
            turn=_turn(updated_fields={"protocol": "AS2"}, new_missing_fields=["locations"]),
            timestamp=_TS,
        )

        second = apply_turn(
            first,
            user_message="?",
            turn=_turn(new_missing_fields=["protocol", "locations"]),
            timestamp=_TS,
        )

        assert "protocol" not in second["missing_fields_after"]
        assert "protocol" in second["resolved_fields"]

    def test_reopened_field_returns_to_unresolved(self):
        first = apply_turn(
            _session(),
            user_message="AS2",
            turn=_turn(updated_fields={"protocol": "AS2"}, new_missing_fields=["locations"]),
            timestamp=_TS,
        )

        second = apply_turn(
            first,
            user_message="Actually we are not sure",
            turn=_turn(reopened_fields=["protocol"]),
            timestamp=_TS,
        )

        assert second["missing_fields_after"] == ["locations", "protocol"]
        assert "protocol" not in second["resolved_fields"]
        # The earlier value stays recorded
        assert second["updated_fields"] == {"protocol": "AS2"}

    def test_assumptions_deduplicated(self):
        first = apply_turn(
            _session(),
            user_message="a",
            turn=_turn(validated_assumptions=["X12 4010"]),
            timestamp=_TS,
        )

        second = apply_turn(
            first,
            user_message="b",
            turn=_turn(validated_assumptions=["X12 4010", "Weekly ASN"]),
            timestamp=_TS,
        )

        assert second["validated_assumptions"] == ["X12 4010", "Weekly ASN"]

    def test_input_session_not_modified(self):
        session = _session()

        apply_turn(session, user_message="a", turn=_turn(updated_fields={"a": 1}), timestamp=_TS)

        assert session["messages"] == []
        assert session["updated_fields"] == {}

    @given(
        st.lists(
            st.fixed_dictionaries(
                {
                    "updated": st.dictionaries(
                        st.sampled_from(["protocol", "locations", "vendor_contacts"]),
                        st.text(max_size=5),
                        max_size=2,
                    ),
                    "missing": st.one_of(
                        st.none(),
                        st.lists(
                            st.sampled_from(["protocol", "locations", "vendor_contacts"]),
                            max_size=3,
                        ),
                    ),
                    "assumptions": st.lists(st.sampled_from(["a", "b", "c"]), max_size=2),
                }
            ),
            max_size=6,
        )
    )
    def test_state_only_grows_without_reopen(self, turns):
        seed = [{"role": "user", "content": "earlier", "timestamp": None}]
        state = _session(seed=seed)

        for n, step in enumerate(turns):
            previous = state
            state = apply_turn(
                state,
                user_message=f"message {n}",
                turn=_turn(
                    updated_fields=step["updated"],
                    new_missing_fields=step["missing"],
                    validated_assumptions=step["assumptions"],
                ),
                timestamp=_TS,
            )
            assert set(previous["updated_fields"]) <= set(state["updated_fields"])
            assert set(previous["resolved_fields"]) <= set(state["resolved_fields"])
            assert set(previous["validated_assumptions"]) <= set(
                state["validated_assumptions"]
            )
            assert not set(state["resolved_fields"]) & set(state["missing_fields_after"])

        assert len(state["messages"]) == len(seed) + 2 * len(turns)


class TestSummarizeSession:
    def test_none_without_turns(self):
        assert summarize_session(None) is None
        assert summarize_session(_session()) is None

    def test_summary_lists_fields_and_gaps(self):
        state = apply_turn(
            _session(),
            user_message="AS2",
            turn=_turn(
                updated_fields={"protocol": "AS2"},
                new_missing_fields=["locations"],
                validated_assumptions=["Single DC"],
            ),
            timestamp=_TS,
        )

        summary = summarize_session(state)

        assert "1 exchange(s)" in summary
        assert "protocol = AS2" in summary
        assert "Single DC" in summary
        assert "Still unresolved: locations" in summary
