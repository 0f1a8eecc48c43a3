"""
Print the current signal for every demo symbol using simulated candles.
Handy for eyeballing the engine without a broker or network access:

    python scripts/demo_signal.py [count] [seed]
"""
import sys

import numpy as np

from signal_engine.core import AVAILABLE_SYMBOLS, generate_mock_candles, generate_signal


def main():
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 100
    seed = int(sys.argv[2]) if len(sys.argv) > 2 else None
    rng = np.random.default_rng(seed)
    for entry in AVAILABLE_SYMBOLS:
        symbol = entry["symbol"]
        candles = generate_mock_candles(symbol, count, rng=rng)
        signal = generate_signal(candles)
        ind = signal.snapshot
        print(
            f"{symbol:<13} {signal.kind.value.upper():<4} conf={signal.confidence:.2f} "
            f"close={ind.close:,.2f} rsi={ind.rsi:.1f} macd={ind.macd:.2f}/{ind.signal_line:.2f} "
            f"bb=[{ind.bb_lower:,.2f}, {ind.bb_upper:,.2f}]"
        )


if __name__ == "__main__":
    main()
