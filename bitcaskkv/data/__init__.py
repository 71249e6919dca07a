"""Log record encoding and data file access."""