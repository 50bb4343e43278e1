import threading
import time

import pytest

from asset_recovery.exceptions import CanvusAPIError
from asset_recovery.models import Canvas, CanvasBackground, MediaDetails, Widget
from asset_recovery.settings import Settings


class FakeSession:
    """
    In-memory stand-in for CanvusSession.

    canvases: {canvas_id: name}
    widgets:  {canvas_id: [(widget_id, widget_type, MediaDetails or Exception)]}
    backgrounds: {canvas_id: hash}
    """

    def __init__(self, canvases=None, widgets=None, backgrounds=None, call_delay=0.0):
        self.canvases = canvases or {}
        self.widgets = widgets or {}
        self.backgrounds = backgrounds or {}
        self.call_delay = call_delay
        self.failing_canvases = set()
        self.server_assets = None  # None = every hash exists
        self.fail_listing = False
        self.fail_login = False

        self.logged_in = False
        self.logged_out = False
        self._lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0

    def login(self, email, password):
        if self.fail_login:
            raise CanvusAPIError("bad credentials", status_code=401)
        self.logged_in = True

    def logout(self):
        self.logged_out = True

    def list_canvases(self):
        if self.fail_listing:
            raise CanvusAPIError("server down", status_code=503)
        return [Canvas(id=cid, name=name) for cid, name in self.canvases.items()]

    def list_widgets(self, canvas_id):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.call_delay:
                time.sleep(self.call_delay)
            if canvas_id in self.failing_canvases:
                raise CanvusAPIError("widgets unavailable", status_code=500)
            return [Widget(id=wid, widget_type=wtype) for wid, wtype, _ in self.widgets.get(canvas_id, [])]
        finally:
            with self._lock:
                self.in_flight -= 1

    def _details(self, canvas_id, widget_id):
        for wid, _, details in self.widgets.get(canvas_id, []):
            if wid == widget_id:
                if isinstance(details, Exception):
                    raise details
                return details
        raise CanvusAPIError("not found", status_code=404)

    get_image_details = _details
    get_pdf_details = _details
    get_video_details = _details

    def get_canvas_background(self, canvas_id):
        h = self.backgrounds.get(canvas_id)
        if h is None:
            raise CanvusAPIError("no background", status_code=404)
        return CanvasBackground(type="image", image_hash=h)

    def get_asset_by_hash(self, canvas_id, asset_hash):
        if self.server_assets is not None and asset_hash not in self.server_assets:
            raise CanvusAPIError("asset not found", status_code=404)
        return b"data"


def media(h, filename="", title=""):
    return MediaDetails(hash=h, original_filename=filename, title=title)


@pytest.fixture
def fake_session():
    return FakeSession(
        canvases={"c1": "Lobby", "c2": "Board Room"},
        widgets={
            "c1": [
                ("w1", "Image", media("AAAAAAAA1", "logo.png", "Logo")),
                ("w2", "Note", None),
                ("w3", "Pdf", media("BBBBBBBB2", "deck.pdf", "Deck")),
            ],
            "c2": [
                ("w4", "Video", media("CCCCCCCC3", "intro.mp4", "Intro")),
                ("w5", "Image", media("AAAAAAAA1", "logo.png", "Logo copy")),
            ],
        },
        backgrounds={"c2": "DDDDDDDD4"},
    )


@pytest.fixture
def settings(tmp_path):
    assets = tmp_path / "assets"
    assets.mkdir()
    backups = tmp_path / "backups"
    backups.mkdir()
    return Settings(
        username="admin@example.com",
        password="secret",
        assets_folder=assets,
        backup_root=backups,
        output_folder=tmp_path / "output",
        requests_per_second=50,
    )
