from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

from .artifacts import ArtifactStore
from .background import BackgroundRemover, Failed, Succeeded
from .composite import composite_over_color
from .config import DEFAULT_BACKGROUND_COLOR, DEFAULT_VIEWPORT, PAPER_SIZE, TARGET_HEIGHT, TARGET_WIDTH
from .contracts import CropAreaRecord, ExportRecord
from .editor import CropEditor
from .errors import DecodeError, PassportPhotoError
from .export import encode, save_export
from .io import ImageBuffer, decode_bytes, guess_mime_type, validate_upload
from .surface import PillowSurface, RasterSurface
from .workflow import (
    BackRequested,
    ColorConfirmed,
    ColorSelected,
    CompositeColor,
    CompositeFailed,
    CompositeFinished,
    CropConfirmed,
    Effect,
    Event,
    ImageUploaded,
    InvalidTransition,
    Release,
    RemovalFailed,
    RemovalRequested,
    RemovalSkipped,
    RemovalSucceeded,
    RemoveBackground,
    ResetRequested,
    Step,
    StepSelected,
    WorkflowState,
    transition,
)

logger = logging.getLogger(__name__)


class PassportSession:
    """
    One wizard run: upload -> crop -> (remove background) -> color -> download.

    Owns the workflow state, the crop editor and every image artifact, and
    executes the effects the workflow asks for.
    """

    def __init__(
        self,
        remover: Optional[BackgroundRemover] = None,
        surface: Optional[RasterSurface] = None,
        viewport: Tuple[float, float] = DEFAULT_VIEWPORT,
    ):
        self.store = ArtifactStore()
        self.state = WorkflowState()
        self.editor = CropEditor(aspect_ratio=PAPER_SIZE.aspect_ratio)
        self.remover = remover or BackgroundRemover()
        self.surface = surface or PillowSurface()
        self.editor.measure_viewport(*viewport)

    # --- Event plumbing ---

    def dispatch(self, event: Event) -> WorkflowState:
        self.state, effects = transition(self.state, event)
        for effect in effects:
            self._run(effect)
        return self.state

    def _run(self, effect: Effect) -> None:
        if isinstance(effect, Release):
            self.store.release(effect.handle)
        elif isinstance(effect, RemoveBackground):
            self._run_removal(effect)
        elif isinstance(effect, CompositeColor):
            self._run_composite(effect)

    def _run_removal(self, effect: RemoveBackground) -> None:
        outcome = self.remover.process(self.store.get(effect.source))
        if isinstance(outcome, Succeeded):
            self.dispatch(RemovalSucceeded(seq=effect.seq, handle=self.store.acquire(outcome.image)))
        elif isinstance(outcome, Failed):
            self.dispatch(RemovalFailed(seq=effect.seq, reason=outcome.reason))

    def _run_composite(self, effect: CompositeColor) -> None:
        try:
            image = composite_over_color(self.store.get(effect.foreground), effect.color, self.surface)
        except PassportPhotoError as e:
            self.dispatch(CompositeFailed(seq=effect.seq, reason=str(e)))
            raise
        self.dispatch(CompositeFinished(seq=effect.seq, handle=self.store.acquire(image)))

    # --- Artifacts ---

    def _image(self, handle: Optional[int]) -> Optional[ImageBuffer]:
        return self.store.get(handle) if handle is not None else None

    @property
    def cropped_image(self) -> Optional[ImageBuffer]:
        return self._image(self.state.cropped)

    @property
    def processed_image(self) -> Optional[ImageBuffer]:
        return self._image(self.state.processed)

    @property
    def preview_image(self) -> Optional[ImageBuffer]:
        """What the color step shows: the composite if there is one, else the foreground."""
        return self._image(self.state.composite) or self._image(self.state.foreground)

    @property
    def final_image(self) -> Optional[ImageBuffer]:
        return self._image(self.state.final)

    # --- Wizard operations ---

    def upload(self, data: bytes, mime_type: str) -> WorkflowState:
        validate_upload(mime_type, len(data))
        image = decode_bytes(data)
        self.editor.load_image(image)
        logger.info("Uploaded %dx%d %s image", image.width, image.height, mime_type)
        return self.dispatch(ImageUploaded(self.store.acquire(image)))

    def upload_file(self, path: str | Path) -> WorkflowState:
        p = Path(path)
        try:
            data = p.read_bytes()
        except OSError as e:
            raise DecodeError(f"Could not read image: {p}") from e
        return self.upload(data, guess_mime_type(p))

    def preview(self) -> ImageBuffer:
        return self.editor.render()

    def confirm_crop(self) -> WorkflowState:
        if self.state.step != "crop":
            raise InvalidTransition(f"Cannot crop in step {self.state.step!r}")
        cropped = self.editor.confirm(self.surface)
        return self.dispatch(CropConfirmed(self.store.acquire(cropped)))

    def remove_background(self) -> WorkflowState:
        return self.dispatch(RemovalRequested())

    def retry_background_removal(self) -> WorkflowState:
        if self.state.removal != "failed":
            raise InvalidTransition("Nothing to retry: background removal has not failed")
        return self.dispatch(RemovalRequested())

    def skip_background_removal(self) -> WorkflowState:
        return self.dispatch(RemovalSkipped())

    def select_color(self, color: str) -> WorkflowState:
        return self.dispatch(ColorSelected(color))

    def confirm_color(self) -> WorkflowState:
        return self.dispatch(ColorConfirmed())

    def export_bytes(self, fmt: str) -> bytes:
        if self.state.step != "download":
            raise InvalidTransition(f"Cannot export in step {self.state.step!r}")
        return encode(self.final_image, fmt, self.surface)

    def download(self, fmt: str, directory: str | Path, filename: Optional[str] = None) -> Path:
        return save_export(self.export_bytes(fmt), fmt, directory, filename)

    def go_to(self, step: Step) -> WorkflowState:
        return self.dispatch(StepSelected(step))

    def back(self) -> WorkflowState:
        return self.dispatch(BackRequested())

    def reset(self) -> WorkflowState:
        self.editor.image = None
        self.editor.reset()
        self.remover.reset()
        return self.dispatch(ResetRequested())


def process_photo(
    image_path: str | Path,
    output_dir: str | Path,
    *,
    fmt: str = "jpg",
    color: str = DEFAULT_BACKGROUND_COLOR,
    remove_bg: bool = False,
    zoom: float = 1.0,
    viewport: Tuple[float, float] = DEFAULT_VIEWPORT,
    remover: Optional[BackgroundRemover] = None,
    filename: Optional[str] = None,
) -> ExportRecord:
    """
    Non-interactive run of the whole wizard with a centered crop.

    STRICT ORDER:
      1) Upload + validate
      2) Crop (centered, given zoom)
      3) Remove background, or skip (also on removal failure)
      4) Apply background color
      5) Export
    """
    session = PassportSession(remover=remover, viewport=viewport)
    session.upload_file(image_path)
    session.editor.set_zoom(zoom)
    crop_area = session.editor.crop_area()
    session.confirm_crop()

    removal_status = "skipped"
    removal_error = ""
    if remove_bg:
        session.remove_background()
        removal_status = session.state.removal
        if session.state.removal == "failed":
            removal_error = session.remover.error or ""
            logger.warning("Background removal failed for %s: %s", image_path, removal_error)
            session.skip_background_removal()
    else:
        session.skip_background_removal()

    session.select_color(color)
    session.confirm_color()
    out_path = session.download(fmt, output_dir, filename)

    return ExportRecord(
        source_path=str(Path(image_path).resolve()),
        output_path=str(out_path.resolve()),
        format="jpg" if fmt.lower() in ("jpg", "jpeg") else "png",
        width=TARGET_WIDTH,
        height=TARGET_HEIGHT,
        dpi=PAPER_SIZE.dpi,
        zoom=session.editor.transform.zoom,
        crop_area=CropAreaRecord(x=crop_area.x, y=crop_area.y, width=crop_area.width, height=crop_area.height),
        background_removed=session.state.background_removed,
        background_color=session.state.background_color if session.state.background_removed else None,
        removal_status=removal_status,
        removal_error=removal_error,
    )
