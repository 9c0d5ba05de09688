"""Document factories and in-process fakes shared across tests.

Documents are generated on the fly with PyMuPDF and Pillow; the OCR binary
and the remote service are always replaced by fakes.
"""

from datetime import date
import io
import random

import fitz
from PIL import Image

from clinical_ocr.extractors.image_ocr import RecognizedText
from clinical_ocr.remote.adapters import VisionRequest, VisionResponse

CLINICAL_TEXT = (
    "Hemograma completo. Paciente ambulatorio, muestra tomada en ayunas. "
    "Hemoglobina 13.8 g/dL dentro de rango. Leucocitos 7200 por mm3. "
    "Plaquetas 250000 por mm3. Glucemia 92 mg/dL. Creatinina 0.9 mg/dL. "
    "Sin hallazgos patologicos significativos en esta muestra. "
    "Complete blood count within normal limits; follow up in six months."
)


# --- Document factories ---


def build_pdf(*pages: str) -> bytes:
    """PDF with one page per string; an empty string leaves the page blank."""
    doc = fitz.open()
    try:
        for text in pages:
            page = doc.new_page()
            if text:
                page.insert_textbox(fitz.Rect(72, 72, 540, 770), text, fontsize=10)
        return doc.tobytes()
    finally:
        doc.close()


def build_image(
    size: tuple[int, int] = (240, 120),
    color: tuple[int, int, int] = (255, 255, 255),
    fmt: str = "PNG",
) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def build_noise_image(size: tuple[int, int], fmt: str = "PNG", seed: int = 0) -> bytes:
    """Incompressible image for exercising the byte budget."""
    rng = random.Random(seed)
    width, height = size
    image = Image.frombytes("RGB", size, rng.randbytes(width * height * 3))
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


# --- Fakes ---


class FakeRecognizer:
    """Recognizer returning canned text and recording each call."""

    def __init__(self, text: str = CLINICAL_TEXT, confidence: float | None = 0.91):
        self.text = text
        self.confidence = confidence
        self.calls: list[tuple[str, str]] = []

    def recognize(self, image, language):
        self.calls.append((image.mode, language))
        return RecognizedText(text=self.text, confidence=self.confidence)


class FakeVisionAdapter:
    """Adapter returning a canned response or raising a canned error."""

    def __init__(
        self,
        text: str = CLINICAL_TEXT,
        *,
        input_tokens: int = 1000,
        output_tokens: int = 200,
        error: BaseException | None = None,
    ):
        self.text = text
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.error = error
        self.requests: list[VisionRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def generate(self, request: VisionRequest) -> VisionResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return VisionResponse(
            content_blocks=(self.text,),
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
        )


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeToday:
    """Manually advanced calendar date."""

    def __init__(self, today: date = date(2024, 3, 14)):
        self.today = today

    def __call__(self) -> date:
        return self.today
