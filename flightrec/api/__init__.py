"""Client and data types for the AlphaSOC Engine HTTP API."""