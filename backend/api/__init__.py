"""HTTP API for merchant timer configuration and storefront delivery."""
