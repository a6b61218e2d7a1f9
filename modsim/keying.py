from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple
import numpy as np

from keyutils import ModParams, Scheme, SimResult, bits_from_string, bits_to_step, make_time_axis

logger = logging.getLogger(__name__)

# ----------------------------
# Small utilities / validation
# ----------------------------

def _validate_bits(bits: List[int]) -> None:
    if not bits:
        raise ValueError("Bits list is empty.")
    if any(b not in (0, 1) for b in bits):
        raise ValueError("Bits must be a list of 0/1 integers.")


def _warn_params(params: ModParams, extra_freqs: List[float]) -> List[str]:
    warnings: List[str] = []
    rate_ok = params.bit_rate > 0
    if not rate_ok:
        warnings.append(f"Bit rate {params.bit_rate:.3g} kbps is non-positive; time axis runs backwards.")
    # Nyquist is meaningless without a positive sample rate
    nyq = params.fs / 2.0 if rate_ok else None
    all_freqs = [float(params.frequency)] + [float(x) for x in extra_freqs]
    for f in all_freqs:
        if f <= 0:
            warnings.append(f"Frequency {f:.3g} kHz is non-positive; results may be invalid.")
        if nyq is not None and f >= nyq:
            warnings.append(f"Frequency {f:.3g} kHz >= Nyquist ({nyq:.3g} kHz): aliasing likely.")
    if params.amplitude <= 0:
        warnings.append(f"Amplitude {params.amplitude:.3g} V is non-positive.")
    if params.samples_per_bit <= 2:
        warnings.append("samples_per_bit is very small; waveforms will look jagged.")
    return warnings


def carrier_wave(t: np.ndarray, amplitude: float, freq: float, phase: float = 0.0) -> np.ndarray:
    """A*sin(2*pi*f*t + phase) with f in kHz and t in ms."""
    return amplitude * np.sin(2 * np.pi * freq * (t / 1000.0) + phase)


# ----------------------------
# Modulation
# ----------------------------

def modulate(bits: List[int], scheme: Scheme, params: ModParams, t: np.ndarray) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Key the carrier bit by bit over the time axis `t`.

    Every bit occupies exactly `samples_per_bit` samples and the keyed
    quantity switches on the sample boundary, so phase and frequency jump
    at bit transitions.
    """
    _validate_bits(bits)

    Ns = int(params.samples_per_bit)
    Ac = float(params.amplitude)
    fc = float(params.frequency)
    N = len(bits) * Ns

    meta: Dict[str, Any] = {"scheme": scheme.value}

    if scheme is Scheme.ASK:
        warnings = _warn_params(params, extra_freqs=[])
        carrier = carrier_wave(t, Ac, fc)
        s = np.zeros(N, dtype=float)
        amps: List[float] = []
        for i, b in enumerate(bits):
            a, z = i * Ns, (i + 1) * Ns
            # '0' suppresses the carrier entirely
            if b == 1:
                s[a:z] = carrier[a:z]
            amps.append(Ac if b == 1 else 0.0)

        meta.update({"A_used": amps, "warnings": warnings})
        return s, meta

    if scheme is Scheme.FSK:
        f1 = fc
        f0 = fc + float(params.freq_dev)
        warnings = _warn_params(params, extra_freqs=[f0])

        s = np.zeros(N, dtype=float)
        freqs: List[float] = []
        for i, b in enumerate(bits):
            a, z = i * Ns, (i + 1) * Ns
            f = f1 if b == 1 else f0
            freqs.append(f)
            s[a:z] = carrier_wave(t[a:z], Ac, f)

        meta.update({"f0": f0, "f1": f1, "f_used": freqs, "warnings": warnings})
        return s, meta

    if scheme is Scheme.PSK:
        warnings = _warn_params(params, extra_freqs=[])
        phase1 = 0.0
        phase0 = float(np.pi)

        s = np.zeros(N, dtype=float)
        phases: List[float] = []
        for i, b in enumerate(bits):
            a, z = i * Ns, (i + 1) * Ns
            phase = phase1 if b == 1 else phase0
            phases.append(phase)
            s[a:z] = carrier_wave(t[a:z], Ac, fc, phase)

        meta.update({"phase1": phase1, "phase0": phase0, "phase_used": phases, "warnings": warnings})
        return s, meta

    raise ValueError(f"Unknown modulation scheme: {scheme}")


# ----------------------------
# End-to-end synthesis
# ----------------------------

def synthesize(params: ModParams) -> SimResult:
    """
    Produce the digital, carrier, modulated and unmodulated series for one run.

    Raises ValidationError before anything is computed when the bit string
    is empty or not binary. `unmodulated` is the carrier array itself, made
    read-only so the two views cannot drift apart.
    """
    bits = bits_from_string(params.bitstr)
    scheme = Scheme.parse(params.scheme)

    Ns = int(params.samples_per_bit)
    if Ns <= 0:
        raise ValueError("samples_per_bit must be a positive integer.")
    bit_ms = params.bit_ms

    t = make_time_axis(len(bits), Ns, bit_ms)
    digital = bits_to_step(bits, Ns)
    carrier = carrier_wave(t, float(params.amplitude), float(params.frequency))
    carrier.flags.writeable = False

    modulated, meta_mod = modulate(bits, scheme, params, t)

    warnings = meta_mod.get("warnings", [])
    for w in warnings:
        logger.warning("%s: %s", scheme.value, w)
    logger.debug(
        "synthesized %d bits (%s as %s), %d samples, bit=%.4g ms",
        len(bits), str(params.scheme).upper(), scheme.value, len(t), bit_ms,
    )

    meta: Dict[str, Any] = {
        "scheme": scheme.value,
        "label": str(params.scheme).strip().upper(),
        "input_len": len(bits),
        "samples_per_bit": Ns,
        "bit_ms": bit_ms,
        "fs": params.fs,
        "modulate": meta_mod,
        "warnings": warnings,
    }

    return SimResult(
        t=t,
        signals={
            "digital": digital,
            "carrier": carrier,
            "modulated": modulated,
            "unmodulated": carrier,
        },
        bits={"input": bits},
        meta=meta,
    )
