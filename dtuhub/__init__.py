"""Protocol core for Hoymiles HM-series micro-inverters: frames, decoders, radio queue and polling."""

__version__ = "0.1.0"