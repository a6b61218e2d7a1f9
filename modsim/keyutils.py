from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import re
import numpy as np


SAMPLES_PER_BIT = 300
DEFAULT_BITSTR = "10110010"
RANDOM_BITS_LEN = 8

# UI slider ranges: (min, max, default, step)
PARAM_RANGES: Dict[str, tuple] = {
    "frequency": (0.5, 3.0, 1.0, 0.1),   # kHz
    "amplitude": (0.1, 2.0, 1.0, 0.1),   # V
    "bit_rate": (0.5, 5.0, 1.0, 0.1),    # kbps
    "freq_dev": (0.1, 1.0, 0.3, 0.1),    # kHz
}

_BITSTR_RE = re.compile(r"[01]+")


class ValidationError(ValueError):
    """Bit string is empty or contains characters other than 0/1."""


class Scheme(Enum):
    ASK = "ASK"
    FSK = "FSK"
    PSK = "PSK"

    @classmethod
    def parse(cls, label: str) -> "Scheme":
        # BASK/BFSK/BPSK are the binary names of the same keying
        key = str(label).strip().upper()
        if key in SCHEME_LABELS:
            return SCHEME_LABELS[key]
        raise ValueError(f"Unknown modulation scheme: {label}")


SCHEME_LABELS: Dict[str, Scheme] = {
    "ASK": Scheme.ASK,
    "FSK": Scheme.FSK,
    "PSK": Scheme.PSK,
    "BASK": Scheme.ASK,
    "BFSK": Scheme.FSK,
    "BPSK": Scheme.PSK,
}


@dataclass
class ModParams:
    frequency: float          # carrier frequency (kHz)
    amplitude: float          # peak amplitude (V)
    bit_rate: float           # kbps
    freq_dev: float = 0.3     # FSK deviation (kHz)
    scheme: str = "ASK"
    bitstr: str = DEFAULT_BITSTR
    samples_per_bit: int = SAMPLES_PER_BIT

    @property
    def bit_ms(self) -> float:
        """Duration of one bit in milliseconds."""
        if float(self.bit_rate) == 0.0:
            raise ValueError("bit_rate must be non-zero.")
        return 1000.0 / float(self.bit_rate)

    @property
    def fs(self) -> float:
        """Sample rate on the same scale as `frequency` (the carrier is sin(2*pi*f*t/1000), t in ms)."""
        return float(self.samples_per_bit) * 1000.0 / self.bit_ms


@dataclass
class SimResult:
    t: np.ndarray                                   # time labels (ms)
    signals: Dict[str, np.ndarray]                  # named waveforms
    bits: Dict[str, List[int]] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)


def validate_bitstr(bitstr: str) -> str:
    s = "" if bitstr is None else str(bitstr)
    if not _BITSTR_RE.fullmatch(s):
        raise ValidationError("invalid binary input: use only 0 and 1 (at least one bit).")
    return s


def bits_from_string(bitstr: str) -> List[int]:
    s = validate_bitstr(bitstr)
    return [1 if c == "1" else 0 for c in s]


def bits_to_string(bits: List[int]) -> str:
    return "".join("1" if b else "0" for b in bits)


def gen_random_bits(n: int = RANDOM_BITS_LEN, seed: Optional[int] = None) -> List[int]:
    rng = np.random.default_rng(seed)
    return [int(x) for x in rng.integers(0, 2, size=n)]


def make_time_axis(nbits: int, samples_per_bit: int, bit_ms: float) -> np.ndarray:
    # t = i*Tb + (s/Ns)*Tb, laid out bit by bit
    Ns = int(samples_per_bit)
    bit_start = np.arange(nbits, dtype=float)[:, None] * bit_ms
    offset = (np.arange(Ns, dtype=float)[None, :] / Ns) * bit_ms
    return (bit_start + offset).ravel()


def bits_to_step(bits: List[int], Ns: int) -> np.ndarray:
    # Step plot helper: repeats each bit value Ns times
    return np.repeat(np.array(bits, dtype=float), Ns)


def fft_mag(x: np.ndarray, fs: float) -> tuple[np.ndarray, np.ndarray]:
    # One-sided magnitude spectrum; frequency unit follows fs
    x = np.asarray(x, dtype=float)
    n = len(x)
    if n == 0:
        return np.array([]), np.array([])
    X = np.fft.rfft(x * np.hanning(n))
    f = np.fft.rfftfreq(n, d=1.0 / fs)
    mag = np.abs(X)
    return f, mag
