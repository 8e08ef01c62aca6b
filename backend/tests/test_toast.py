"""
Tests for transient toasts.
"""
from draftio.client.toast import Toaster, generate_toast_id


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestToaster:
    def setup_method(self):
        self.clock = FakeClock()
        self.toaster = Toaster(duration=5.0, clock=self.clock)
        self.raised = []
        self.toaster.add_sink(self.raised.append)

    def test_show_uses_default_duration(self):
        toast = self.toaster.show("Bob", "hi")

        assert toast.title == "Bob"
        assert toast.description == "hi"
        assert toast.duration == 5.0
        assert toast.id.startswith("toast-")
        assert self.raised == [toast]

    def test_same_id_not_raised_twice_while_visible(self):
        first = self.toaster.show("Bob", "hi", toast_id="msg-1")
        second = self.toaster.show("Bob", "hi again", toast_id="msg-1")

        assert second is first
        assert len(self.raised) == 1

    def test_same_id_raised_again_after_expiry(self):
        self.toaster.show("Bob", "hi", toast_id="msg-1")
        self.clock.now += 5.0
        self.toaster.show("Bob", "hi", toast_id="msg-1")

        assert len(self.raised) == 2

    def test_active_drops_expired(self):
        self.toaster.show("a", duration=1.0)
        self.toaster.show("b", duration=10.0)
        self.clock.now += 2.0

        assert [t.title for t in self.toaster.active()] == ["b"]

    def test_dismiss_and_clear(self):
        toast = self.toaster.show("a")
        self.toaster.show("b")

        assert self.toaster.dismiss(toast.id) is True
        assert self.toaster.dismiss(toast.id) is False
        self.toaster.clear()
        assert self.toaster.active() == []


def test_generated_ids_are_unique():
    ids = {generate_toast_id() for _ in range(50)}
    assert len(ids) == 50
