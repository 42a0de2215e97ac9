"""
Barcode capture from a camera (OpenCV + pyzbar) or from a still image.

Decoding runs continuously over video frames; a scanning session accepts the
first payload that is not a fresh repeat of the previously accepted one and
then stops and releases the camera.
"""
import logging
import time
from typing import Iterator, List, Optional

import cv2
from PIL import Image
from pyzbar.pyzbar import decode

logger = logging.getLogger(__name__)


def decode_frame(frame, decoder=decode) -> List[str]:
    """Returns every payload pyzbar finds in one frame, as text."""
    texts = []
    for result in decoder(frame):
        try:
            text = result.data.decode("utf-8").strip()
        except (AttributeError, UnicodeDecodeError):
            continue
        if text:
            texts.append(text)
    return texts


def decode_image(path, decoder=decode) -> Optional[str]:
    """Decodes the first barcode in an image file, or None."""
    try:
        with Image.open(path) as img:
            texts = decode_frame(img.convert("RGB"), decoder)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read image {path}: {e}")
        return None
    return texts[0] if texts else None


class BarcodeScanner:
    """
    ``last_code`` is the most recently accepted payload. The same payload is
    ignored for ``repeat_after`` seconds after it was accepted, so a barcode
    still in front of the lens does not fire again, while a deliberate rescan
    of the same product later is accepted.
    """

    def __init__(self, devices: Optional[List[int]] = None, device_index: Optional[int] = None,
                 capture_factory=cv2.VideoCapture, decoder=decode, repeat_after: float = 2.0):
        self.capture_factory = capture_factory
        self.decoder = decoder
        self.repeat_after = repeat_after
        self._devices = devices
        self.device_index = device_index
        self.last_code: Optional[str] = None
        self._accepted_at = 0.0
        self.error: Optional[str] = None
        self.scanning = False
        self._stop = False

    def list_devices(self, max_probe: int = 5) -> List[int]:
        """Camera indices that can be opened, probed once and remembered."""
        if self._devices is None:
            found = []
            for index in range(max_probe):
                cap = self.capture_factory(index)
                try:
                    if cap is not None and cap.isOpened():
                        found.append(index)
                finally:
                    if cap is not None:
                        cap.release()
            self._devices = found
        return self._devices

    def switch_camera(self) -> Optional[int]:
        """Moves to the next available camera and returns its index."""
        devices = self.list_devices()
        if not devices:
            return self.device_index
        try:
            idx = devices.index(self.device_index)
        except ValueError:
            idx = -1
        self.device_index = devices[(idx + 1) % len(devices)]
        return self.device_index

    def stop_scanning(self) -> None:
        """Asks a running scan loop to end. The loop releases the camera itself."""
        self._stop = True

    def _release(self, capture) -> None:
        try:
            capture.release()
        except cv2.error as e:
            logger.warning(f"Camera release failed: {e}")
        self.scanning = False

    def _fail(self, message: str) -> None:
        logger.warning(message)
        self.error = message

    def _is_repeat(self, text: str) -> bool:
        return text == self.last_code and time.monotonic() - self._accepted_at < self.repeat_after

    def start_scanning(self, timeout: Optional[float] = None) -> Iterator[str]:
        """
        Lazily yields decoded codes from the camera. At most one code is
        accepted per session; the camera is released before the code is
        yielded, and in any case when the loop ends.
        """
        self.error = None
        self._stop = False
        if self.device_index is None:
            devices = self.list_devices()
            if not devices:
                self._fail("No camera available. Check the camera permissions.")
                return
            self.device_index = devices[0]

        capture = self.capture_factory(self.device_index)
        if capture is None or not capture.isOpened():
            self._fail(f"Could not open camera {self.device_index}. Check the camera permissions.")
            if capture is not None:
                self._release(capture)
            return

        self.scanning = True
        started = time.monotonic()
        accepted = None
        try:
            while accepted is None and not self._stop:
                if timeout is not None and time.monotonic() - started > timeout:
                    logger.info("Scanning timed out without a code")
                    break
                ok, frame = capture.read()
                if not ok:
                    self._fail("Could not read from the camera.")
                    break
                for text in decode_frame(frame, self.decoder):
                    if not self._is_repeat(text):
                        accepted = text
                        break
        finally:
            self._release(capture)

        if accepted is not None:
            self.last_code = accepted
            self._accepted_at = time.monotonic()
            yield accepted

    def scan_once(self, timeout: Optional[float] = None) -> Optional[str]:
        scanner = self.start_scanning(timeout=timeout)
        try:
            return next(scanner, None)
        finally:
            scanner.close()
