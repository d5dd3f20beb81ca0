"""Session shopping cart service for the two-phase cooling storefront."""
