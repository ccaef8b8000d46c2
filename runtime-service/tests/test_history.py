"""
Undo/redo history tests.
"""

from uiruntime.services.history import History


class TestHistory:

    def test_initial_state(self):
        history = History({"a": 1})
        assert history.present == {"a": 1}
        assert not history.can_undo
        assert not history.can_redo

    def test_deep_equal_set_is_a_no_op(self):
        history = History({"a": [1, 2]})
        assert history.set_state({"a": [1, 2]}) is False
        assert history.past == []
        assert not history.can_undo

    def test_set_then_undo_then_redo(self):
        history = History("v1")
        history.set_state("v2")
        history.set_state("v3")

        assert history.undo() is True
        assert history.present == "v2"
        assert history.future == ["v3"]

        assert history.redo() is True
        assert history.present == "v3"
        assert history.past == ["v1", "v2"]

    def test_undo_redo_symmetry(self):
        history = History(0)
        for value in range(1, 6):
            history.set_state(value)
        for _ in range(3):
            history.undo()
        for _ in range(3):
            history.redo()
        assert history.present == 5
        assert history.past == [0, 1, 2, 3, 4]
        assert history.future == []

    def test_new_state_clears_future(self):
        history = History("a")
        history.set_state("b")
        history.undo()
        history.set_state("c")
        assert not history.can_redo
        assert history.past == ["a"]

    def test_undo_redo_on_empty_stacks(self):
        history = History("a")
        assert history.undo() is False
        assert history.redo() is False
        assert history.present == "a"

    def test_updater_receives_copy(self):
        history = History({"items": [1]})

        def add(state):
            state["items"].append(2)
            return state

        assert history.set_state(add) is True
        assert history.present == {"items": [1, 2]}
        history.undo()
        assert history.present == {"items": [1]}

    def test_present_is_a_copy(self):
        history = History({"items": [1]})
        history.present["items"].append(99)
        assert history.present == {"items": [1]}

    def test_limit_trims_oldest(self):
        history = History(0, limit=2)
        for value in range(1, 5):
            history.set_state(value)
        assert history.past == [2, 3]

    def test_reset(self):
        history = History("a")
        history.set_state("b")
        history.reset("z")
        assert history.present == "z"
        assert not history.can_undo and not history.can_redo
