"""Media library scanner: file discovery, metadata parsing, scan steps and the scanner service."""