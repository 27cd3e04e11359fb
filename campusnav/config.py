"""Configuration settings for campusnav."""

CONFIG = {
    # Pathfinding
    "pathfinding_algorithm": "astar",  # "astar" or "bfs"
    "coincide_epsilon": 1e-9,  # normalized units - points closer than this are the same spot
    # Directions
    "walking_speed_fps": 4.0,  # feet per second
    "turn_threshold": 30,  # degrees - turns smaller than this read as "straight"
    "default_feet_per_pixel": 0.5,  # used until the floor plan is calibrated
    "meters_to_feet": 3.28084,
    # Off-route monitoring
    "off_route_tolerance": 0.03,  # normalized units
    "min_movement": 0.01,  # normalized units - ignore jitter smaller than this
    "tracking_poll_interval": 3,  # seconds
    # Positioning
    "position_history_size": 10,
    "smoothing_weights": [0.2, 0.3, 0.5],  # oldest -> newest
    "min_position_accuracy": 0.1,  # samples below this confidence are ignored
    "gps_timeout": 30,  # seconds
    "gps_accuracy_ceiling": 100,  # meters - accuracy at or beyond this means no confidence
    "gps_unknown_accuracy_confidence": 0.5,  # fixes reported without an accuracy
    "ip_geolocation_url": "http://ip-api.com/json/?fields=status,message,country,region,city,lat,lon",
    "ip_geolocation_accuracy": 0.3,
    "request_timeout": 10,  # seconds
    "wifi_neighbors": 3,  # k for the fingerprint k-nearest-neighbours estimate
    "wifi_max_rssi_difference": 100,  # dBm - difference that maps to zero similarity
    # Coordinates
    "campus_bounds_margin": 0.05,  # fraction of campus size tolerated outside the GPS corners
    # Dataset
    "dataset_version": "1.0",
    "coordinate_system": "normalized",
}
