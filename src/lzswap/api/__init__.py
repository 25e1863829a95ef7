"""HTTP surface for the swap quote proxy."""
