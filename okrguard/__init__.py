"""OKR Guard: tenant isolation for a multi-tenant OKR application."""
