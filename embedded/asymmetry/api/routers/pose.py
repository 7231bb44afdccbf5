"""Pose ingestion endpoint router.

Owns the process-wide detector backend. Clients (camera source, replay
script, mobile app) push landmark frames here; the backend's pump thread
publishes them and writes metric rows while a session is recording.
"""
from __future__ import annotations

from fastapi import APIRouter
from loguru import logger

from asymmetry.api.schemas import Envelope, FrameInput, FrameOutput
from asymmetry.core.config import Settings, get_settings
from asymmetry.vision.pipeline import PoseBackend, build_pose_backend

router = APIRouter()


def backend_from_settings(s: Settings) -> PoseBackend:
    kwargs = {"threshold": s.visibility_threshold, "queue_size": s.frame_queue_size}
    if s.pose_backend == "normalized":
        kwargs.update(
            frame_width=s.camera_width,
            frame_height=s.camera_height,
            swap_axes=s.swap_normalized_axes,
        )
    return build_pose_backend(s.pose_backend, **kwargs)


pose_backend = backend_from_settings(get_settings())
pose_backend.start()


@router.post("/pose/frame", response_model=Envelope)
async def pose_frame(payload: FrameInput) -> Envelope:
    """Queue one detection result and report whether it passes the gate."""
    landmarks = [kp.model_dump() for kp in payload.keypoints]
    pose = pose_backend.to_pose(landmarks, payload.frame_width, payload.frame_height)
    usable = pose_backend.is_pose_usable(pose)
    kept_all = pose_backend.submit(
        landmarks,
        frame_width=payload.frame_width,
        frame_height=payload.frame_height,
        timestamp_ms=payload.timestamp_ms,
    )
    if not kept_all:
        logger.debug("Frame channel full, dropped oldest frame")
    out = FrameOutput(
        accepted=True,
        usable=usable,
        dropped_oldest=not kept_all,
        keypoints=len(pose) if pose is not None else 0,
    )
    return Envelope(success=True, data=out.model_dump())


@router.get("/pose/latest", response_model=Envelope)
async def pose_latest() -> Envelope:
    pose = pose_backend.get_latest_pose()
    data = {
        "usable": pose_backend.is_pose_usable(pose),
        "age_ms": pose_backend.latest_pose_age_ms(),
        "pending_frames": pose_backend.pending_frames,
        "keypoints": {},
    }
    if pose is not None:
        data["keypoints"] = {name: {"x": kp.x, "y": kp.y, "score": kp.confidence} for name, kp in pose.keypoints.items()}
    return Envelope(success=True, data=data)
