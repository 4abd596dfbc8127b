"""sRGB transfer functions and alpha premultiplication for (N, 4) float32 RGBA arrays."""

from __future__ import annotations

import numpy as np

ALPHA_EPSILON = 1e-6


def srgb_to_linear(srgb: np.ndarray) -> np.ndarray:
    """Convert sRGB-encoded values (0-1) to linear light."""
    s = np.asarray(srgb, dtype=np.float32)
    linear = s / np.float32(12.92)
    curve = s > np.float32(0.04045)
    linear[curve] = ((s[curve] + np.float32(0.055)) / np.float32(1.055)) ** np.float32(2.4)
    return linear


def linear_to_srgb(linear: np.ndarray) -> np.ndarray:
    """Convert linear-light values (0-1) back to sRGB encoding."""
    l = np.asarray(linear, dtype=np.float32)
    srgb = l * np.float32(12.92)
    curve = l > np.float32(0.0031308)
    srgb[curve] = np.float32(1.055) * l[curve] ** np.float32(1 / 2.4) - np.float32(0.055)
    return srgb


def premultiply_alpha(rgba: np.ndarray) -> np.ndarray:
    out = np.array(rgba, dtype=np.float32)
    out[:, :3] *= out[:, 3:4]
    return out


def unpremultiply_alpha(rgba: np.ndarray, epsilon: float = ALPHA_EPSILON) -> np.ndarray:
    """Divide r,g,b by alpha; alpha <= epsilon is treated as 1.0."""
    out = np.array(rgba, dtype=np.float32)
    alpha = out[:, 3:4]
    out[:, :3] /= np.where(alpha <= np.float32(epsilon), np.float32(1.0), alpha)
    return out


def linearize_premultiplied(rgba: np.ndarray) -> np.ndarray:
    """sRGB -> linear on r,g,b, then premultiply by alpha. Alpha is untouched."""
    out = np.array(rgba, dtype=np.float32)
    out[:, :3] = srgb_to_linear(out[:, :3])
    return premultiply_alpha(out)


def delinearize_unpremultiplied(rgba: np.ndarray, epsilon: float = ALPHA_EPSILON) -> np.ndarray:
    """Inverse of linearize_premultiplied: un-premultiply, then linear -> sRGB."""
    out = unpremultiply_alpha(rgba, epsilon)
    out[:, :3] = linear_to_srgb(out[:, :3])
    return out
