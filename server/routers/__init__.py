"""HTTP routers for the Ride the Bus server."""
