import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Callable, Dict, List, Optional

from tqdm import tqdm

from .. import config
from ..exceptions import DiscoveryError
from ..models import (
    AssetInfo,
    Canvas,
    DiscoveryResult,
    MediaDetails,
    ServerValidationResult,
    Widget,
    WidgetType,
    unique_assets,
)
from .rate_limiter import RateLimiter


class AssetDiscoverer:
    """
    Crawls every canvas on the server and collects one AssetInfo per media reference.

    `session` must provide list_canvases, list_widgets, get_image_details,
    get_pdf_details, get_video_details, get_canvas_background and
    get_asset_by_hash (see api.session.CanvusSession).
    """

    def __init__(self,
                 session,
                 requests_per_second: int = config.DEFAULT_REQUESTS_PER_SECOND,
                 max_concurrent: int = config.MAX_CONCURRENT_CANVASES,
                 show_progress: Optional[bool] = None):
        self.session = session
        self.requests_per_second = requests_per_second
        self.max_concurrent = max_concurrent
        # tqdm treats disable=None as "only when attached to a TTY"
        self.progress_disabled = None if show_progress is None else not show_progress

        self.handlers: Dict[WidgetType, Callable[[str, str], MediaDetails]] = {
            WidgetType.IMAGE: session.get_image_details,
            WidgetType.PDF: session.get_pdf_details,
            WidgetType.VIDEO: session.get_video_details,
        }

    def discover_all_assets(self, validate_on_server: bool = False) -> DiscoveryResult:
        result = DiscoveryResult(start_time=datetime.now())

        try:
            canvases = self.session.list_canvases()
        except Exception as e:
            raise DiscoveryError(f"Failed to list canvases: {e}") from e

        result.canvases = list(canvases)
        logging.info(f"Crawling {len(result.canvases)} canvases "
                     f"({self.max_concurrent} concurrent, {self.requests_per_second} req/s)...")

        with RateLimiter(self.requests_per_second) as limiter, \
                ThreadPoolExecutor(max_workers=self.max_concurrent) as executor:
            future_to_canvas = {
                executor.submit(self._process_canvas, canvas, limiter, result): canvas
                for canvas in result.canvases
            }

            with tqdm(total=len(future_to_canvas), desc="Discovering", unit="canvas",
                      disable=self.progress_disabled) as bar:
                for future in as_completed(future_to_canvas):
                    canvas = future_to_canvas[future]
                    try:
                        future.result()
                    except Exception as e:
                        logging.error(f"Failed to process canvas '{canvas.name}' ({canvas.id}): {e}")
                        result.add_error(f"Canvas '{canvas.name}' ({canvas.id}): {e}")
                    bar.update(1)

        result.end_time = datetime.now()
        logging.info(f"Discovery complete in {result.duration:.1f}s: "
                     f"{len(result.assets)} media references, {len(result.errors)} errors.")

        if validate_on_server:
            result.server_validation = self.validate_assets_on_server(result.assets)

        return result

    def _process_canvas(self, canvas: Canvas, limiter: RateLimiter, result: DiscoveryResult):
        limiter.wait()

        assets = self._extract_media_assets(canvas, result)
        assets.extend(self._extract_background_assets(canvas))

        # Only the merge is serialized; network calls above run unlocked
        result.add_assets(assets)

    def _extract_media_assets(self, canvas: Canvas, result: DiscoveryResult) -> List[AssetInfo]:
        try:
            widgets = self.session.list_widgets(canvas.id)
        except Exception as e:
            logging.error(f"Failed to get widgets for canvas '{canvas.name}' ({canvas.id}): {e}")
            result.add_error(f"Canvas '{canvas.name}' ({canvas.id}): failed to list widgets: {e}")
            return []

        logging.debug(f"Canvas '{canvas.name}': {len(widgets)} widgets")

        assets = []
        for widget in widgets:
            try:
                asset = self._extract_asset_from_widget(canvas, widget)
            except Exception as e:
                logging.warning(f"Failed to get {widget.widget_type} {widget.id} on '{canvas.name}': {e}")
                result.add_error(f"Canvas '{canvas.name}' ({canvas.id}): "
                                 f"{widget.widget_type} widget {widget.id}: {e}")
                continue
            if asset:
                assets.append(asset)

        logging.debug(f"Canvas '{canvas.name}': {len(assets)} media assets")
        return assets

    def _extract_asset_from_widget(self, canvas: Canvas, widget: Widget) -> Optional[AssetInfo]:
        """Returns an AssetInfo for media widgets with a hash, None otherwise. Fetch errors propagate."""
        kind = WidgetType.media_type(widget.widget_type)
        if kind is None:
            return None

        details = self.handlers[kind](canvas.id, widget.id)
        if not details.hash:
            logging.debug(f"No hash for {widget.widget_type} {widget.id} - not a media asset")
            return None

        return AssetInfo(
            hash=details.hash,
            widget_type=kind.value,
            original_filename=details.original_filename,
            canvas_id=canvas.id,
            canvas_name=canvas.name,
            widget_id=widget.id,
            widget_name=details.title,
        )

    def _extract_background_assets(self, canvas: Canvas) -> List[AssetInfo]:
        try:
            background = self.session.get_canvas_background(canvas.id)
        except Exception as e:
            # Most canvases have no background image
            logging.debug(f"No background for canvas '{canvas.name}' ({canvas.id}): {e}")
            return []

        if not background or not background.image_hash:
            return []

        return [AssetInfo(
            hash=background.image_hash,
            widget_type=WidgetType.CANVAS_BACKGROUND.value,
            original_filename='',
            canvas_id=canvas.id,
            canvas_name=canvas.name,
            widget_id=config.BACKGROUND_WIDGET_ID,
            widget_name=config.BACKGROUND_WIDGET_NAME,
        )]

    def validate_assets_on_server(self, assets: List[AssetInfo]) -> ServerValidationResult:
        """
        Checks each unique hash with GET /assets/{hash}. Failures are counted, never raised.
        """
        unique = unique_assets([a for a in assets if a.hash])
        validation = ServerValidationResult(total_assets=len(unique))

        logging.info(f"Validating {len(unique)} unique assets on the server...")
        for asset in tqdm(unique, desc="Validating", unit="asset", disable=self.progress_disabled):
            try:
                self.session.get_asset_by_hash(asset.canvas_id, asset.hash)
            except Exception as e:
                validation.missing_assets += 1
                validation.validation_errors.append(
                    f"Missing: {asset.widget_name} ({asset.widget_type}) - Hash: {asset.hash} - Error: {e}"
                )
                continue
            validation.existing_assets += 1

        logging.info(f"Server validation: {validation.existing_assets}/{validation.total_assets} assets exist")
        return validation


def discover_all_assets(session,
                        requests_per_second: int = config.DEFAULT_REQUESTS_PER_SECOND,
                        validate_on_server: bool = False) -> DiscoveryResult:
    return AssetDiscoverer(session, requests_per_second).discover_all_assets(validate_on_server)
