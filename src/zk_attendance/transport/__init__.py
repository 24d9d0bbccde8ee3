"""Transport: TCP socket, session state machine, reply routing and buffered transfers."""
