"""Request/review workflows for school administration (expenditures, financial and exam reports)."""
