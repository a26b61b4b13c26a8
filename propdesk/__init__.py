"""PropDesk - property-management back-office client."""
