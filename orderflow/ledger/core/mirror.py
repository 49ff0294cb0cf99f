"""
Cross-chain mirror of the global counters (epoch, lifetime distributed).

Inbound updates overwrite local values. Every payload carries a sequence
number; with mirror_strict_ordering (the default) an update that does not
advance the sequence is rejected. With strict ordering off, any update from
the trusted sender is applied as-is.
"""

import logging
from typing import TYPE_CHECKING
from ...protocol.types.common import StaleMirrorUpdate, Unauthorized
from ...protocol.types.ledger import MirrorPayload

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)


def send_mirror(ctx: 'ExecutionContext') -> MirrorPayload:
    g = ctx.state.globals
    g.mirror_outbound_sequence += 1
    payload = MirrorPayload(
        epoch=ctx.state.current_epoch,
        lifetime_distributed=g.lifetime_distributed,
        sequence=g.mirror_outbound_sequence,
        source_chain=ctx.config.chain_id,
    )
    channel = ctx.services.mirror_channel
    ctx.defer(lambda: channel.send(payload))
    ctx.emit("mirror_sent", **payload.model_dump())
    return payload


def receive_mirror(ctx: 'ExecutionContext', sender: str, payload: MirrorPayload):
    trusted = ctx.services.trusted_mirror_sender
    if trusted is None or sender != trusted:
        raise Unauthorized(f"Mirror sender {sender} is not trusted")

    g = ctx.state.globals
    if ctx.config.mirror_strict_ordering and payload.sequence <= g.mirror_inbound_sequence:
        logger.warning(f"Rejecting stale mirror update seq={payload.sequence} (last {g.mirror_inbound_sequence})")
        raise StaleMirrorUpdate(
            f"Sequence {payload.sequence} does not advance last accepted {g.mirror_inbound_sequence}"
        )

    previous_epoch = ctx.state.clock.current_epoch
    ctx.state.clock.current_epoch = payload.epoch
    g.lifetime_distributed = payload.lifetime_distributed
    g.mirror_inbound_sequence = max(g.mirror_inbound_sequence, payload.sequence)

    if payload.epoch < previous_epoch:
        logger.warning(f"Mirror update rewound epoch {previous_epoch} -> {payload.epoch}")
    ctx.emit("mirror_received", previous_epoch=previous_epoch, **payload.model_dump())
