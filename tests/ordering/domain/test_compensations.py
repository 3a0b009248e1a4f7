from ordering.checkout.compensation import Compensations


class TestCompensations:
    def test_runs_newest_first_with_reason(self):
        calls = []
        compensations = Compensations()
        compensations.push("first", lambda reason: calls.append(("first", reason)))
        compensations.push("second", lambda reason: calls.append(("second", reason)))

        failed = compensations.run("gateway down")

        assert failed == []
        assert calls == [("second", "gateway down"), ("first", "gateway down")]
        assert len(compensations) == 0

    def test_failing_step_does_not_stop_the_rest(self):
        calls = []

        def boom(reason):
            raise RuntimeError("nope")

        compensations = Compensations()
        compensations.push("release:a", lambda reason: calls.append("a"))
        compensations.push("cancel", boom)
        compensations.push("release:b", lambda reason: calls.append("b"))

        failed = compensations.run("oops")

        assert failed == ["cancel"]
        assert calls == ["b", "a"]

    def test_discard_forgets_steps(self):
        calls = []
        compensations = Compensations()
        compensations.push("step", lambda reason: calls.append(reason))
        compensations.discard()

        assert compensations.run("late") == []
        assert calls == []
