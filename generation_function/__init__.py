"""Generation Cloud Function: swipe history -> prompt -> Replicate prediction."""
