"""File IO back ends for data files: standard IO and read-only memory maps."""