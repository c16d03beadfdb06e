ENROLLMENTS_COLLECTION = "enrollments"
MOCK_TESTS_COLLECTION = "mockTests"
TEST_RESULTS_COLLECTION = "testResults"
TEST_SESSIONS_COLLECTION = "testSessions"
