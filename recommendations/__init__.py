"""
Recommendations Module Summary
==============================

Reviews, the Surprise Me survey and the ranking engine for Points of Interest (POIs).

Key Features Implemented:
1. ScoringService - weighted ranking of map search results
   (tag preference 0.5, review volume 0.3, like ratio 0.2)
2. Popularity ranking from community signals only
3. SurveyService - swipe survey, preference recording and Surprise Me suggestions
4. Reviews with images, one per user and POI
5. REST API endpoints
"""
