"""HTTP primitives: request, response, cookies, forms."""
