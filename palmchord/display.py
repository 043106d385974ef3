"""Display utilities for the camera preview."""

import cv2
import numpy as np
from typing import Union, Tuple, Optional, Callable, Sequence

from palmchord.util import midi_to_note_name

# -------------------------------------------------------------------------------
# Types
# -------------------------------------------------------------------------------

Color = Union[Tuple[int, int, int], Tuple[int, int, int, int]]  # BGR or BGRA

# -------------------------------------------------------------------------------
# Screen drawing functions
# -------------------------------------------------------------------------------


def _format_value(value, float_format):
    if isinstance(value, float):
        return f"{value:{float_format}}"
    return str(value)


def display_features_on_image(
    img: np.ndarray,
    features: dict,
    *,
    font=cv2.FONT_HERSHEY_SIMPLEX,
    font_scale: float = 0.7,
    color: Color = (0, 255, 0),
    thickness: float = 2,
    float_format: str = ".2f",
    x_pos=10,
    y_pos=30,
    y_increment=28,
    bg_color: Color = (
        150,
        150,
        150,
        128,
    ),  # Light grey, semi-transparent (BGR + alpha)
):
    """
    Display ``features`` (name: value) on the image, over a semi-transparent
    background.

    Args:
        img: The image to draw on
        features: Dictionary of values to show
        font: Font type to use
        font_scale: Size of the font
        color: Text color in BGR format
        thickness: Line thickness of text
        float_format: Format string for float values
        x_pos: Starting x position for text
        y_pos: Starting y position for text
        y_increment: Vertical space between lines
        bg_color: Background color (BGR + alpha) where alpha is 0-255
    """
    if not features:
        return img

    overlay = img.copy()

    if len(bg_color) == 4:
        bg_rgb = bg_color[:3]
        alpha = bg_color[3] / 255.0
    else:
        bg_rgb = bg_color
        alpha = 0.5

    lines = [
        f"{key}: {_format_value(value, float_format)}" for key, value in features.items()
    ]

    padding = 5
    for idx, text in enumerate(lines):
        (text_width, text_height), _ = cv2.getTextSize(
            text, font, font_scale, thickness
        )
        cv2.rectangle(
            overlay,
            (x_pos - padding, y_pos + idx * y_increment - text_height - padding),
            (x_pos + text_width + padding, y_pos + idx * y_increment + padding),
            bg_rgb,
            -1,
        )

    cv2.addWeighted(overlay, alpha, img, 1 - alpha, 0, img)

    for idx, text in enumerate(lines):
        cv2.putText(
            img,
            text,
            (x_pos, y_pos + idx * y_increment),
            font,
            font_scale,
            color,
            thickness,
        )

    return img


def draw_hand_landmarks(img, hand_landmarks, mp_hands, mp_draw):
    """Draw the landmarks of one hand on the image."""
    if hand_landmarks is not None:
        mp_draw.draw_landmarks(img, hand_landmarks, mp_hands.HAND_CONNECTIONS)
    return img


def draw_palm_lines(img, palm_center, *, color: Color = (0, 255, 0)):
    """
    Draws vertical and horizontal lines across the image, through the palm center
    (normalized coordinates).
    """
    if palm_center is None:
        return img
    h, w, _ = img.shape
    cx, cy = int(palm_center[0] * w), int(palm_center[1] * h)
    cv2.line(img, (cx, 0), (cx, h), color, 2)
    cv2.line(img, (0, cy), (w, cy), color, 2)
    return img


def draw_scale_marks(
    img,
    scale: Sequence[int],
    *,
    base_pitch: int,
    pitch_span: float,
    point_color: Color = (0, 0, 255),
    text_color: Color = (0, 200, 200),
):
    """
    Mark, across the middle of the image, the x positions where each pitch of
    ``scale`` is the nearest one. x covers ``[base_pitch, base_pitch + pitch_span]``.
    """
    h, w, _ = img.shape
    vertical_center = h // 2
    font = cv2.FONT_HERSHEY_SIMPLEX
    for pitch in scale:
        x_pos = int((pitch - base_pitch) / pitch_span * w)
        if not 0 <= x_pos < w:
            continue
        cv2.circle(img, (x_pos, vertical_center), 5, point_color, -1)
        label = midi_to_note_name(pitch)
        (text_width, _), _ = cv2.getTextSize(label, font, 0.4, 1)
        cv2.putText(
            img,
            label,
            (x_pos - text_width // 2, vertical_center + 20),
            font,
            0.4,
            text_color,
            1,
        )
    return img


def draw_on_screen(
    tracker,
    img: np.ndarray,
    hand_landmarks,
    features: Optional[dict] = None,
    *,
    palm_center=None,
    draw_landmarks: bool = True,
    draw_features: Optional[Callable] = display_features_on_image,
    scale: Optional[Sequence[int]] = None,
    base_pitch: int = 42,
):
    """
    Draw the tracked hand, the lines through its palm, the scale and the latest
    pipeline values on the image.

    Args:
        tracker: HandTracker instance (for its MediaPipe modules)
        img: The input image
        hand_landmarks: The landmarks of the tracked hand, or None
        features: Values to display
        palm_center: Normalized palm center, or None
        draw_landmarks: Whether to draw hand landmarks
        draw_features: Function to draw features (or None to skip)
        scale: Pitches to mark along the x axis

    Returns:
        img: The image with visualizations added
    """
    if draw_landmarks:
        img = draw_hand_landmarks(img, hand_landmarks, tracker.mp_hands, tracker.mp_draw)

    img = draw_palm_lines(img, palm_center)

    if draw_features and features:
        img = draw_features(img, features)

    if scale:
        img = draw_scale_marks(img, scale, base_pitch=base_pitch, pitch_span=len(scale))

    return img
