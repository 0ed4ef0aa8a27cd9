from __future__ import annotations

import numpy as np

from imagekit.domain.entities.operation import CropOp, FlipOp, Operation, ResizeOp, RotateOp


class ProcessingService:
    """Pure NumPy geometric transforms. Inputs and outputs are float32 arrays normalized to [0, 1].

    Channel convention:
    - Grayscale: (H, W)
    - RGB / RGBA: (H, W, C)
    """

    @staticmethod
    def apply(matrix: np.ndarray, operations: list[Operation]) -> np.ndarray:
        out = matrix.astype(np.float32)
        for op in operations:
            if isinstance(op, ResizeOp):
                out = ProcessingService.resize(out, op.width, op.height)
            elif isinstance(op, RotateOp):
                out = ProcessingService.rotate(out, op.angle)
            elif isinstance(op, CropOp):
                out = ProcessingService.crop(out, op.origin_x, op.origin_y, op.width, op.height)
            elif isinstance(op, FlipOp):
                out = ProcessingService.flip(out, op.vertical)
            else:
                raise ValueError(f"Unsupported operation: {op!r}")
        return out

    # Resize to (width, height) with nearest-neighbor sampling
    @staticmethod
    def resize(matrix: np.ndarray, width: int, height: int) -> np.ndarray:
        width, height = int(width), int(height)
        if width <= 0 or height <= 0:
            raise ValueError("resize target must be positive")
        return ProcessingService._resize_nearest(matrix.astype(np.float32), (height, width))

    # Rotate clockwise by angle degrees. Quarter turns are exact; other angles
    # grow the canvas to fit the rotated image and fill the corners with zeros.
    @staticmethod
    def rotate(matrix: np.ndarray, angle: float) -> np.ndarray:
        mat = matrix.astype(np.float32)
        angle = float(angle) % 360.0
        if angle % 90.0 == 0.0:
            return np.ascontiguousarray(np.rot90(mat, k=-int(angle // 90.0), axes=(0, 1)))
        h, w = mat.shape[:2]
        rad = np.deg2rad(angle)
        cos_a = np.cos(rad)
        sin_a = np.sin(rad)
        new_w = int(round(abs(w * cos_a) + abs(h * sin_a)))
        new_h = int(round(abs(w * sin_a) + abs(h * cos_a)))
        if mat.ndim == 2:
            out = np.zeros((new_h, new_w), dtype=np.float32)
        else:
            out = np.zeros((new_h, new_w, mat.shape[2]), dtype=np.float32)
        cx = (w - 1) / 2.0
        cy = (h - 1) / 2.0
        ncx = (new_w - 1) / 2.0
        ncy = (new_h - 1) / 2.0
        # For each destination pixel, map back to source
        ys, xs = np.indices((new_h, new_w))
        x_rel = xs - ncx
        y_rel = ys - ncy
        x_src = cos_a * x_rel + sin_a * y_rel + cx
        y_src = -sin_a * x_rel + cos_a * y_rel + cy
        x_src_round = np.rint(x_src).astype(int)
        y_src_round = np.rint(y_src).astype(int)
        valid = (x_src_round >= 0) & (x_src_round < w) & (y_src_round >= 0) & (y_src_round < h)
        out[valid] = mat[y_src_round[valid], x_src_round[valid]]
        return out

    # Crop the rectangle at (origin_x, origin_y) of size width x height,
    # clipped to the image bounds
    @staticmethod
    def crop(matrix: np.ndarray, origin_x: int, origin_y: int, width: int, height: int) -> np.ndarray:
        mat = matrix.astype(np.float32)
        h, w = mat.shape[:2]
        x_start = max(0, int(origin_x))
        y_start = max(0, int(origin_y))
        x_end = min(w, int(origin_x) + int(width))
        y_end = min(h, int(origin_y) + int(height))
        if x_end <= x_start or y_end <= y_start:
            raise ValueError("crop rectangle lies outside the image")
        return mat[y_start:y_end, x_start:x_end]

    # Mirror top-to-bottom (vertical) or left-to-right (horizontal)
    @staticmethod
    def flip(matrix: np.ndarray, vertical: bool) -> np.ndarray:
        mat = matrix.astype(np.float32)
        return np.ascontiguousarray(np.flipud(mat) if vertical else np.fliplr(mat))

    # --------- helpers ---------
    @staticmethod
    def _resize_nearest(img: np.ndarray, target_hw: tuple[int, int]) -> np.ndarray:
        th, tw = target_hw
        h, w = img.shape[:2]
        if h == th and w == tw:
            return img
        # create index grid mapping target->source
        ys = (np.arange(th) * (h / th)).astype(np.int64)
        xs = (np.arange(tw) * (w / tw)).astype(np.int64)
        ys = np.clip(ys, 0, h - 1)
        xs = np.clip(xs, 0, w - 1)
        if img.ndim == 2:
            return img[ys[:, None], xs[None, :]].astype(np.float32)
        return img[ys[:, None], xs[None, :], :].astype(np.float32)
