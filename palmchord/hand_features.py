"""Hand tracking with a webcam, as a source of palmchord samples.

The camera stands in for a 3D hand tracker: the palm center gives x and y, the
apparent size of the hand gives depth, the palm normal gives tilt and the
thumb-index distance gives the pinch. Everything is expressed in the units of
the config's tracking box, so the rest of the pipeline can't tell the difference.
"""

import math
import time
from typing import Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np

from palmchord.config import PalmChordConfig
from palmchord.display import draw_on_screen as DFLT_DRAW_ON_SCREEN
from palmchord.sources import Sample, SampleSource, SourceExhausted, DFLT_TIMEOUT_MS

ESCAPE_KEY_ASCII = 27
BREAK_KEYS = set([ESCAPE_KEY_ASCII])

# Wrist to middle finger knuckle, in normalized image units, from far to near
DFLT_HAND_SIZE_RANGE = (0.05, 0.3)

# Landmark indices
WRIST = 0
THUMB_TIP = 4
INDEX_FINGER_MCP = 5
INDEX_FINGER_TIP = 8
MIDDLE_FINGER_MCP = 9
PINKY_MCP = 17
PALM_INDICES = (0, 1, 5, 9, 13, 17)

# -------------------------------------------------------------------------------
# Keyboard and camera
# -------------------------------------------------------------------------------


class KeyboardBreakSignal(SourceExhausted):
    """Exception raised when a break key is pressed."""


class CameraReadError(SourceExhausted):
    """Exception raised when camera read fails."""


def read_keyboard(wait_time: int = 1) -> int:
    """
    Read keyboard input (of the preview window) with the specified wait time.

    Returns:
        The key code or 0 if no key was pressed
    """
    return cv2.waitKey(wait_time) & 0xFF


def check_break_key(key_code: int):
    if key_code in BREAK_KEYS:
        raise KeyboardBreakSignal(f"Break key pressed: {key_code}")


def read_camera(cap: cv2.VideoCapture):
    """
    Read a frame from the camera and flip it horizontally.

    Raises:
        CameraReadError: If the camera read operation fails
    """
    success, img = cap.read()
    if not success:
        raise CameraReadError("Failed to read from camera")

    # Flip image horizontally for a more natural interaction
    return cv2.flip(img, 1)


# -------------------------------------------------------------------------------
# Hand tracker
# -------------------------------------------------------------------------------


class HandTracker:
    """
    Detects hands with MediaPipe Hands.

    Attributes:
        mode (bool): Mode for the hand detection (static images or video).
        max_hands (int): Maximum number of hands to detect.
        detection_con (float): Minimum detection confidence threshold.
        track_con (float): Minimum tracking confidence threshold.
    """

    def __init__(self, mode=False, *, max_hands=2, detection_con=0.5, track_con=0.5):
        self.mode = mode
        self.max_hands = max_hands
        self.detection_con = detection_con
        self.track_con = track_con

        self.mp_hands = mp.solutions.hands
        self.hands = self.mp_hands.Hands(
            self.mode,
            self.max_hands,
            min_detection_confidence=self.detection_con,
            min_tracking_confidence=self.track_con,
        )
        self.mp_draw = mp.solutions.drawing_utils

    def find_hands(self, img):
        """MediaPipe's hand detection results for a BGR image."""
        img_rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        return self.hands.process(img_rgb)

    def close(self):
        self.hands.close()


def find_hand(hand_detection, handedness: str = 'Right'):
    """The landmarks of the first hand labeled ``handedness``, or None."""
    if not hand_detection.multi_hand_landmarks:
        return None
    for idx, hand_landmarks in enumerate(hand_detection.multi_hand_landmarks):
        label = hand_detection.multi_handedness[idx].classification[0].label
        if label == handedness:
            return hand_landmarks
    return None


# -------------------------------------------------------------------------------
# Hand feature extraction helpers
# -------------------------------------------------------------------------------


def calculate_euclidean_distance(point1, point2):
    """Calculate the Euclidean distance between two 3D points."""
    return math.sqrt(
        (point1[0] - point2[0]) ** 2
        + (point1[1] - point2[1]) ** 2
        + (point1[2] - point2[2]) ** 2
    )


def calculate_palm_center(points):
    palm = np.array([points[i] for i in PALM_INDICES])
    return tuple(palm.mean(axis=0))


def calculate_palm_normal(points):
    p0, p5, p17 = (np.array(points[i]) for i in (WRIST, INDEX_FINGER_MCP, PINKY_MCP))
    return np.cross(p5 - p0, p17 - p0)


def palm_tilt(points) -> float:
    """Sideways tilt of the palm, from -1 to 1 (0 is facing the camera)."""
    normal = calculate_palm_normal(points)
    norm = np.linalg.norm(normal)
    if norm == 0:
        return 0.0
    return float(np.clip(normal[0] / norm, -1.0, 1.0))


def landmark_points(hand_landmarks):
    return [(lm.x, lm.y, lm.z) for lm in hand_landmarks.landmark]


def hand_to_sample(
    points,
    config: PalmChordConfig,
    timestamp: float,
    *,
    hand_size_range: Tuple[float, float] = DFLT_HAND_SIZE_RANGE,
) -> Sample:
    """
    Make a sample from the (normalized) landmark points of a hand.

    The frame spans the config's tracking box: left to right is ``min_x`` to
    ``max_x``, top to bottom is ``min_y`` to ``max_y``. A hand is at ``min_z`` when
    it looks smallest (far) and ``max_z`` when largest (near).
    """
    cx, cy, _ = calculate_palm_center(points)
    x = config.min_x + cx * (config.max_x - config.min_x)
    y = config.min_y + cy * (config.max_y - config.min_y)

    size = calculate_euclidean_distance(points[WRIST], points[MIDDLE_FINGER_MCP])
    lo, hi = hand_size_range
    nearness = float(np.clip((size - lo) / (hi - lo), 0.0, 1.0))
    z = config.min_z + nearness * (config.max_z - config.min_z)

    pinch_scale = abs(config.max_x - config.min_x)
    pinch = (
        calculate_euclidean_distance(points[THUMB_TIP], points[INDEX_FINGER_TIP])
        * pinch_scale
    )
    return Sample(x, y, z, tilt=palm_tilt(points), pinch=pinch, timestamp=timestamp)


# -------------------------------------------------------------------------------
# Camera source
# -------------------------------------------------------------------------------


class CameraHandSource(SampleSource):
    """
    Samples of one hand, tracked with a webcam.

    ``next`` returns None for frames where the hand isn't found. With ``show``,
    frames are displayed along with ``features`` (set it to what you want to see,
    the latest pipeline values for example). ESC stops the source.
    """

    def __init__(
        self,
        config: PalmChordConfig = PalmChordConfig(),
        *,
        camera_index: int = 0,
        handedness: str = 'Right',
        show: bool = True,
        window_name: str = 'palmchord',
        draw_on_screen=DFLT_DRAW_ON_SCREEN,
        scale=None,
    ):
        self.config = config
        self.handedness = handedness
        self.show = show
        self.window_name = window_name
        self.draw_on_screen = draw_on_screen
        self.scale = scale
        self.features = {}
        self.cap = cv2.VideoCapture(camera_index)
        if not self.cap.isOpened():
            raise CameraReadError(f"Could not open camera {camera_index}")
        self.tracker = HandTracker()

    def next(self, timeout_ms: float = DFLT_TIMEOUT_MS) -> Optional[Sample]:
        check_break_key(read_keyboard())
        img = read_camera(self.cap)
        timestamp = time.monotonic()

        hand_landmarks = find_hand(self.tracker.find_hands(img), self.handedness)
        sample = None
        palm_center = None
        if hand_landmarks is not None:
            points = landmark_points(hand_landmarks)
            palm_center = calculate_palm_center(points)
            sample = hand_to_sample(points, self.config, timestamp)

        if self.show:
            img = self.draw_on_screen(
                self.tracker,
                img,
                hand_landmarks,
                self.features,
                palm_center=palm_center,
                scale=self.scale,
                base_pitch=self.config.base_pitch,
            )
            cv2.imshow(self.window_name, img)
        return sample

    def close(self):
        self.cap.release()
        self.tracker.close()
        if self.show:
            cv2.destroyAllWindows()
