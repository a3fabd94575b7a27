from __future__ import annotations

# Block the protocol's contracts were deployed around; first backfill starts here.
DEFAULT_START_BLOCK = 10_750_000

# Width of an ABI word / topic in bytes.
WORD_SIZE = 32
SELECTOR_SIZE = 4

# ERC-20 Transfer(address,address,uint256)
TRANSFER_T0 = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
