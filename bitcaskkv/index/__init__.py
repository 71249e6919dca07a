"""In-memory and on-disk indexes mapping keys to record positions."""